"""
sqlite helpers: connections, the staging + normalized schema, and indexes.
one database file holds staging and the three target tables.
"""

import logging
import os
import sqlite3

import pandas as pd

from config import DB_PATH, HIGH_VALUE_THRESHOLD, STAGING_COLUMNS

logger = logging.getLogger(__name__)

TARGET_TABLES = ['users', 'recipients', 'transactions']

STAGING_DDL = "CREATE TABLE IF NOT EXISTS stg_all ({})".format(
    ', '.join(f"{col} TEXT" for col in STAGING_COLUMNS))

TARGET_DDL = [
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id TEXT PRIMARY KEY,
        cust_age INTEGER,
        signup_channel TEXT,
        city TEXT,
        state TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recipients (
        recipient_id TEXT PRIMARY KEY,
        category TEXT,
        receiver_bank TEXT,
        city TEXT,
        state TEXT
    )
    """,
    # timestamps are ISO-8601 text in UTC so sqlite date functions work on them.
    # payer_id / payee_id are plain references, no foreign keys
    """
    CREATE TABLE IF NOT EXISTS transactions (
        trans_id TEXT PRIMARY KEY,
        trans_ts TEXT,
        trans_received_ts TEXT,
        payer_id TEXT,
        payee_id TEXT,
        amount REAL,
        trans_category TEXT,
        payment_method TEXT,
        status TEXT,
        sender_bank TEXT,
        receiver_bank TEXT,
        from_state TEXT,
        to_state TEXT,
        upi_app TEXT,
        device TEXT,
        created_at TEXT
    )
    """,
]

INDEX_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_trans_ts ON transactions (trans_ts)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_payer ON transactions (payer_id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_payee ON transactions (payee_id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_status ON transactions (status)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_upi_app ON transactions (upi_app)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_state ON transactions (from_state, to_state)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_device ON transactions (device)",
    # partial index for the high value slice
    "CREATE INDEX IF NOT EXISTS idx_transactions_amount_high ON transactions (trans_ts) "
    f"WHERE amount > {HIGH_VALUE_THRESHOLD}",
]


def get_connection(db_path=None):
    if db_path is None:
        db_path = DB_PATH
    if db_path != ':memory:':
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    return sqlite3.connect(db_path)


def create_schema(conn):
    """staging + the three target tables. safe to run on an existing db."""
    with conn:
        conn.execute(STAGING_DDL)
        for ddl in TARGET_DDL:
            conn.execute(ddl)
    logger.debug("schema ready")


def create_indexes(conn):
    with conn:
        for ddl in INDEX_DDL:
            conn.execute(ddl)
    logger.info("built %d indexes", len(INDEX_DDL))


def drop_all(conn):
    """wipes staging and targets for a from-scratch run"""
    with conn:
        for table in ['stg_all'] + TARGET_TABLES:
            conn.execute(f"DROP TABLE IF EXISTS {table}")


def table_count(conn, table):
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def table_counts(conn):
    return {table: table_count(conn, table) for table in ['stg_all'] + TARGET_TABLES}


def run_query(query, conn, params=None):
    return pd.read_sql_query(query, conn, params=params)
