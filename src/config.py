"""
paths and fixed knobs for the batch. the query constants are part of the
reporting contract so change them with care.
"""

import os
from dataclasses import dataclass

from errors import ConfigError

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
RAW_DIR = os.path.join(BASE_DIR, 'data', 'raw')
DB_PATH = os.path.join(BASE_DIR, 'database', 'upi_analytics.db')
RAW_CSV_PATH = os.path.join(RAW_DIR, 'upi_transactions_raw.csv')
REPORT_PATH = os.path.join(BASE_DIR, 'reports', 'upi_analytics_report.xlsx')

# raw file layout, in order. the loader only checks the field count
STAGING_COLUMNS = [
    'cust_id', 'trans_id', 'trans_amnt', 'amnt_sent_datetime',
    'amnt_received_datetime', 'recipient_id', 'trans_category',
    'payment_method', 'trans_status', 'cust_age', 'sender_bank',
    'receiver_bank', 'from_state', 'to_state', 'upi_app', 'transaction_device',
]

TOP_N = 20
CORRIDOR_LIMIT = 50
ANOMALY_WINDOW_DAYS = 30
ANOMALY_SIGMA = 3.0
ANOMALY_ROW_LIMIT = 200

# NUMERIC(14,2) -> at most 12 digits before the point
AMOUNT_MAX_ABS = 10 ** 12
HIGH_VALUE_THRESHOLD = 10000

# dashboard hour-of-day chart is drawn on IST (+05:30), storage stays UTC
DISPLAY_UTC_OFFSET_MINUTES = 330

DEFAULT_NUM_TRANSACTIONS = 50_000


@dataclass(frozen=True)
class PipelineConfig:
    db_path: str
    raw_csv: str
    report_path: str
    num_transactions: int

    @classmethod
    def from_env(cls):
        return cls(
            db_path=os.getenv('UPI_DB_PATH', DB_PATH),
            raw_csv=os.getenv('UPI_RAW_CSV', RAW_CSV_PATH),
            report_path=os.getenv('UPI_REPORT_PATH', REPORT_PATH),
            num_transactions=_parse_positive_int(
                'UPI_NUM_TRANSACTIONS',
                os.getenv('UPI_NUM_TRANSACTIONS', str(DEFAULT_NUM_TRANSACTIONS))),
        )


def _parse_positive_int(name, raw_value):
    try:
        value = int(raw_value)
    except ValueError as error:
        raise ConfigError(f"{name} must be an integer, got {raw_value!r}") from error
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value
