"""
turns the raw staging rows into users, recipients and transactions.

normalize() is pure: staging frame in, three frames out, nothing touches the
database. write_normalized() then does "insert if absent" so running the
whole thing twice over the same staging data changes nothing.
"""

import logging
import re
from collections import namedtuple
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import partial

import pandas as pd

from config import AMOUNT_MAX_ABS, STAGING_COLUMNS
from errors import NormalizationError

logger = logging.getLogger(__name__)

NormalizedBatch = namedtuple('NormalizedBatch', ['users', 'recipients', 'transactions'])

USER_COLUMNS = ['user_id', 'cust_age', 'signup_channel', 'city', 'state']
RECIPIENT_COLUMNS = ['recipient_id', 'category', 'receiver_bank', 'city', 'state']
TRANSACTION_COLUMNS = [
    'trans_id', 'trans_ts', 'trans_received_ts', 'payer_id', 'payee_id', 'amount',
    'trans_category', 'payment_method', 'status', 'sender_bank', 'receiver_bank',
    'from_state', 'to_state', 'upi_app', 'device', 'created_at',
]

# anything that isn't a digit, a dot or a minus goes. structure is NOT checked
# here, so "12-34.56.78" survives stripping and then fails the decimal cast
AMOUNT_STRIP_RE = re.compile(r'[^0-9.\-]')
AGE_RE = re.compile(r'^\s*[+-]?\d+\s*$')
CENTS = Decimal('0.01')


# ---- field level casts ----

def blank_to_none(value):
    """'' (after trimming) and missing values become None, everything else is kept"""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    value = str(value)
    return value if value.strip() != '' else None


def clean_id(value):
    value = blank_to_none(value)
    return value.strip() if value is not None else None


def parse_age(value):
    value = blank_to_none(value)
    if value is None:
        return None
    if not AGE_RE.match(value):
        raise NormalizationError('cust_age', value, 'not an integer')
    return int(value)


def parse_amount(value):
    """
    '$1,234.56 INR' -> Decimal('1234.56'), '-50.5' -> Decimal('-50.50').
    rounds half away from zero to 2 places like NUMERIC(14,2) does.
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    stripped = AMOUNT_STRIP_RE.sub('', str(value))
    if stripped == '':
        return None
    try:
        amount = Decimal(stripped)
    except InvalidOperation as e:
        raise NormalizationError('trans_amnt', value,
                                 f"{stripped!r} is not a decimal number") from e
    if not amount.is_finite():
        raise NormalizationError('trans_amnt', value, 'not a finite number')
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if abs(amount) >= AMOUNT_MAX_ABS:
        raise NormalizationError('trans_amnt', value, 'out of range for NUMERIC(14,2)')
    return amount


def parse_timestamp(value, column):
    """
    returns an ISO-8601 string in UTC, or None for blanks.
    text without an offset is read as UTC.
    """
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        ts = pd.Timestamp(value.strip())
    except (ValueError, TypeError, OverflowError) as e:
        raise NormalizationError(column, value, 'not a timestamp') from e
    if pd.isna(ts):
        raise NormalizationError(column, value, 'not a timestamp')
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    else:
        ts = ts.tz_convert('UTC')
    return ts.isoformat(sep=' ')


def _ingestion_stamp(ingested_at):
    ts = pd.Timestamp(ingested_at)
    ts = ts.tz_localize('UTC') if ts.tzinfo is None else ts.tz_convert('UTC')
    return ts.isoformat(sep=' ')


# ---- projections ----

def _cast(series, func):
    # plain list so ints/Decimals don't get coerced to float alongside None
    return pd.Series([func(v) for v in series], index=series.index, dtype='object')


def _check_staging(staging):
    missing = [c for c in STAGING_COLUMNS if c not in staging.columns]
    if missing:
        raise ValueError(f"staging frame is missing columns: {missing}")


def _with_key(staging, column):
    """rows with a non-blank key, plus the trimmed keys. casts only ever see these rows"""
    _check_staging(staging)
    keys = _cast(staging[column], clean_id)
    keep = keys.notna()
    return staging[keep], keys[keep]


def project_users(staging):
    rows, user_ids = _with_key(staging, 'cust_id')
    users = pd.DataFrame({
        'user_id': user_ids,
        # every keyed row is cast before dedup: one bad age fails the whole batch
        'cust_age': _cast(rows['cust_age'], parse_age),
        'signup_channel': None,
        'city': None,
        'state': _cast(rows['from_state'], blank_to_none),
    }, columns=USER_COLUMNS)
    users = users.drop_duplicates(subset='user_id', keep='first')
    return users.reset_index(drop=True)


def project_recipients(staging):
    rows, recipient_ids = _with_key(staging, 'recipient_id')
    recipients = pd.DataFrame({
        'recipient_id': recipient_ids,
        'category': _cast(rows['trans_category'], blank_to_none),
        'receiver_bank': _cast(rows['receiver_bank'], blank_to_none),
        'city': None,
        'state': _cast(rows['to_state'], blank_to_none),
    }, columns=RECIPIENT_COLUMNS)
    recipients = recipients.drop_duplicates(subset='recipient_id', keep='first')
    return recipients.reset_index(drop=True)


def project_transactions(staging, ingested_at):
    rows, trans_ids = _with_key(staging, 'trans_id')
    text = {col: _cast(rows[col], blank_to_none) for col in STAGING_COLUMNS}
    txns = pd.DataFrame({
        'trans_id': trans_ids,
        'trans_ts': _cast(rows['amnt_sent_datetime'],
                         partial(parse_timestamp, column='amnt_sent_datetime')),
        'trans_received_ts': _cast(rows['amnt_received_datetime'],
                                  partial(parse_timestamp, column='amnt_received_datetime')),
        # references, not ownership - these may not exist in users/recipients
        'payer_id': _cast(rows['cust_id'], clean_id),
        'payee_id': _cast(rows['recipient_id'], clean_id),
        'amount': _cast(rows['trans_amnt'], parse_amount),
        'trans_category': text['trans_category'],
        'payment_method': text['payment_method'],
        'status': text['trans_status'],
        'sender_bank': text['sender_bank'],
        'receiver_bank': text['receiver_bank'],
        'from_state': text['from_state'],
        'to_state': text['to_state'],
        'upi_app': text['upi_app'],
        'device': text['transaction_device'],
        'created_at': _ingestion_stamp(ingested_at),
    }, columns=TRANSACTION_COLUMNS)
    txns = txns.drop_duplicates(subset='trans_id', keep='first')
    return txns.reset_index(drop=True)


def normalize(staging, ingested_at):
    """staging frame -> NormalizedBatch. raises NormalizationError on the first bad cast."""
    batch = NormalizedBatch(
        users=project_users(staging),
        recipients=project_recipients(staging),
        transactions=project_transactions(staging, ingested_at),
    )
    logger.info("normalized %s staging rows -> %s users, %s recipients, %s transactions",
                f"{len(staging):,}", f"{len(batch.users):,}",
                f"{len(batch.recipients):,}", f"{len(batch.transactions):,}")
    return batch


# ---- database side ----

def read_staging(conn):
    return pd.read_sql_query(f"SELECT {', '.join(STAGING_COLUMNS)} FROM stg_all", conn)


def _to_db(value):
    if value is None:
        return None
    if isinstance(value, Decimal):
        # stored as REAL, the value is already rounded to cents
        return float(value)
    if isinstance(value, float) and pd.isna(value):
        return None
    if hasattr(value, 'item'):
        return value.item()
    return value


def _insert_ignore(conn, table, frame):
    columns = list(frame.columns)
    placeholders = ', '.join('?' for _ in columns)
    sql = f"INSERT OR IGNORE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
    rows = ([_to_db(v) for v in row] for row in frame.itertuples(index=False, name=None))
    before = conn.total_changes
    conn.executemany(sql, rows)
    return conn.total_changes - before


def write_normalized(conn, batch):
    """
    first write wins: rows whose key already exists are skipped, never updated.
    all three inserts share one transaction.
    """
    inserted = {}
    with conn:
        inserted['users'] = _insert_ignore(conn, 'users', batch.users)
        inserted['recipients'] = _insert_ignore(conn, 'recipients', batch.recipients)
        inserted['transactions'] = _insert_ignore(conn, 'transactions', batch.transactions)
    for table, count in inserted.items():
        logger.info("%s: %s new rows", table, f"{count:,}")
    return inserted


def normalize_staging(conn, ingested_at=None):
    if ingested_at is None:
        ingested_at = pd.Timestamp.now(tz='UTC')
    staging = read_staging(conn)
    batch = normalize(staging, ingested_at)
    return write_normalized(conn, batch)
