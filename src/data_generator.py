"""
generates a raw UPI transactions CSV in the 16-column layout the loader expects.

every value is written as text the way exports from wallet apps actually look:
amounts with rupee signs and thousands separators, IST offsets on timestamps,
some blank ids and ages, and a handful of duplicated rows. the normalizer has
to deal with all of it.
"""

import json
import os
import random
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd

from config import DEFAULT_NUM_TRANSACTIONS, STAGING_COLUMNS

np.random.seed(42)
random.seed(42)

IST = timezone(timedelta(hours=5, minutes=30))

NUM_USERS = 5_000
NUM_RECIPIENTS = 1_500
START_DATE = datetime(2024, 1, 1, tzinfo=IST)
END_DATE = datetime(2024, 12, 31, tzinfo=IST)

# these shares are from NPCI Q3 2024 reports
UPI_APPS = {
    'PhonePe': 0.47,
    'Google Pay': 0.34,
    'Paytm': 0.08,
    'CRED': 0.03,
    'Amazon Pay': 0.02,
    'WhatsApp Pay': 0.02,
    'BHIM': 0.01,
    'SBI': 0.01,
    'HDFC': 0.01,
    'ICICI': 0.01,
}
APP_NAMES = list(UPI_APPS.keys())
APP_WEIGHTS = list(UPI_APPS.values())

BANKS = ['SBI', 'HDFC', 'ICICI', 'Axis', 'Kotak', 'BOB', 'PNB',
         'IndusInd', 'Yes Bank', 'Federal Bank', 'IDFC First']

STATES = ['Maharashtra', 'Delhi', 'Karnataka', 'Telangana', 'Tamil Nadu',
          'West Bengal', 'Gujarat', 'Rajasthan', 'Uttar Pradesh', 'Kerala',
          'Madhya Pradesh', 'Punjab']
STATE_WEIGHTS = [0.18, 0.14, 0.14, 0.10, 0.09, 0.07, 0.07, 0.05, 0.06, 0.04, 0.03, 0.03]

CATEGORIES = ['Groceries', 'Food & Dining', 'Shopping', 'Travel', 'Fuel',
              'Entertainment', 'Healthcare', 'Education', 'Utilities', 'P2P Transfer']
PAYMENT_METHODS = ['UPI Collect', 'UPI Intent', 'QR Scan', 'UPI Lite']
STATUSES = ['SUCCESS', 'FAILED', 'PENDING']
STATUS_WEIGHTS = [0.93, 0.05, 0.02]
DEVICES = ['Android', 'iOS', 'Web']
DEVICE_WEIGHTS = [0.76, 0.21, 0.03]


def generate_timestamp(start, end):
    """random timestamp with the usual late morning / evening peaks"""
    delta = end - start
    base_date = start + timedelta(days=random.randint(0, delta.days))
    hour_weights = [
        0.005, 0.003, 0.002, 0.002, 0.003, 0.008,  # 0-5 am
        0.015, 0.030, 0.045, 0.065, 0.080, 0.085,  # 6-11 am
        0.075, 0.060, 0.050, 0.045, 0.050, 0.060,  # 12-5 pm
        0.075, 0.085, 0.080, 0.055, 0.035, 0.015   # 6-11 pm
    ]
    hour_weights = np.array(hour_weights) / sum(hour_weights)
    hour = np.random.choice(24, p=hour_weights)
    return base_date.replace(hour=int(hour), minute=random.randint(0, 59),
                             second=random.randint(0, 59))


def generate_amount(category):
    """log-normal, because spending is right-skewed"""
    if category == 'P2P Transfer':
        amount = min(np.random.lognormal(mean=6.0, sigma=1.2), 100000)
    elif category in ('Travel', 'Education', 'Utilities'):
        amount = min(np.random.lognormal(mean=7.0, sigma=0.8), 100000)
    else:
        amount = min(np.random.lognormal(mean=5.5, sigma=1.0), 50000)
    return round(max(1, amount), 2)


def format_amount(amount):
    """the same number written a few different ways, like real exports"""
    style = random.random()
    if style < 0.55:
        return f"{amount:.2f}"
    if style < 0.80:
        return f"₹{amount:,.2f}"
    if style < 0.95:
        return f"{amount:,.2f} INR"
    return f"Rs {amount:.2f}"


def generate_profiles():
    users = pd.DataFrame({
        'cust_id': [f"CUST{i:06d}" for i in range(NUM_USERS)],
        'cust_age': np.clip(np.random.normal(34, 11, NUM_USERS).astype(int), 18, 80),
        'from_state': np.random.choice(STATES, size=NUM_USERS, p=STATE_WEIGHTS),
        'sender_bank': np.random.choice(BANKS, size=NUM_USERS),
    })
    recipients = pd.DataFrame({
        'recipient_id': [f"RCPT{i:05d}" for i in range(NUM_RECIPIENTS)],
        'trans_category': np.random.choice(CATEGORIES, size=NUM_RECIPIENTS),
        'receiver_bank': np.random.choice(BANKS, size=NUM_RECIPIENTS),
        'to_state': np.random.choice(STATES, size=NUM_RECIPIENTS, p=STATE_WEIGHTS),
    })
    return users, recipients


def generate_transactions(num_transactions=DEFAULT_NUM_TRANSACTIONS):
    print(f"generating {num_transactions:,} transactions...")
    print(f"users: {NUM_USERS:,} | recipients: {NUM_RECIPIENTS:,}")
    print("-" * 50)

    users, recipients = generate_profiles()
    records = []
    for i in range(num_transactions):
        if i % 100000 == 0 and i > 0:
            print(f"  ...{i:,} done")

        user = users.iloc[random.randint(0, NUM_USERS - 1)]
        recipient = recipients.iloc[random.randint(0, NUM_RECIPIENTS - 1)]
        sent = generate_timestamp(START_DATE, END_DATE)
        received = sent + timedelta(seconds=random.randint(1, 90))
        category = recipient['trans_category']

        records.append({
            'cust_id': user['cust_id'],
            'trans_id': f"TXN{sent.strftime('%Y%m%d')}{i:07d}",
            'trans_amnt': format_amount(generate_amount(category)),
            'amnt_sent_datetime': sent.isoformat(sep=' '),
            'amnt_received_datetime': received.isoformat(sep=' '),
            'recipient_id': recipient['recipient_id'],
            'trans_category': category,
            'payment_method': random.choice(PAYMENT_METHODS),
            'trans_status': np.random.choice(STATUSES, p=STATUS_WEIGHTS),
            'cust_age': str(user['cust_age']),
            'sender_bank': user['sender_bank'],
            'receiver_bank': recipient['receiver_bank'],
            'from_state': user['from_state'],
            'to_state': recipient['to_state'],
            'upi_app': np.random.choice(APP_NAMES, p=APP_WEIGHTS),
            'transaction_device': np.random.choice(DEVICES, p=DEVICE_WEIGHTS),
        })

    df = pd.DataFrame(records, columns=STAGING_COLUMNS)
    print(f"base transactions done: {len(df):,}")
    return df


def add_dirty_values(df, missing_rate=0.01, duplicate_rate=0.005):
    """
    blanks out some ids, ages and received times and duplicates a few rows,
    so the normalizer has nulls and conflicts to handle.
    """
    df = df.copy()
    n = len(df)
    num_missing = int(n * missing_rate)

    for col, size in [('cust_id', num_missing // 4), ('recipient_id', num_missing // 4),
                      ('trans_id', num_missing // 10), ('cust_age', num_missing),
                      ('amnt_received_datetime', num_missing // 2),
                      ('transaction_device', num_missing // 3)]:
        if size > 0:
            idx = np.random.choice(df.index, size=size, replace=False)
            df.loc[idx, col] = ''

    num_dupes = int(n * duplicate_rate)
    if num_dupes > 0:
        dupes = df.sample(n=num_dupes, random_state=42)
        df = pd.concat([df, dupes], ignore_index=True)
        df = df.sample(frac=1, random_state=42).reset_index(drop=True)

    return df


def save_data(df, output_dir, filename='upi_transactions_raw.csv'):
    """saves the CSV and writes a quick summary JSON next to it"""
    os.makedirs(output_dir, exist_ok=True)
    filepath = os.path.join(output_dir, filename)
    df.to_csv(filepath, index=False)
    print(f"\nsaved: {filepath}")
    print(f"size: {os.path.getsize(filepath) / (1024*1024):.1f} MB")

    stats = {
        'total_rows': len(df),
        'unique_transactions': int(df.loc[df['trans_id'] != '', 'trans_id'].nunique()),
        'unique_customers': int(df.loc[df['cust_id'] != '', 'cust_id'].nunique()),
        'unique_recipients': int(df.loc[df['recipient_id'] != '', 'recipient_id'].nunique()),
        'blank_ages': int((df['cust_age'] == '').sum()),
        'generated_at': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
    }
    stats_path = os.path.join(output_dir, 'data_summary.json')
    with open(stats_path, 'w') as f:
        json.dump(stats, f, indent=2, default=str)
    print(f"summary: {stats_path}")

    return filepath


if __name__ == '__main__':
    df = add_dirty_values(generate_transactions())
    output_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'data', 'raw')
    save_data(df, output_dir)
    print("\ndone! run run_pipeline.py next.")
