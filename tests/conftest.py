"""Pytest configuration: src/ on the path plus shared database fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
for path in (PROJECT_ROOT / "src", PROJECT_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from config import STAGING_COLUMNS  # noqa: E402
from db_utils import create_schema, get_connection  # noqa: E402
from loader import stage_rows  # noqa: E402
from normalizer import normalize_staging  # noqa: E402

INGESTED_AT = pd.Timestamp("2025-01-01 00:00:00", tz="UTC")

_DEFAULT_ROW = {
    "cust_id": "CUST000001",
    "trans_id": "TXN0000001",
    "trans_amnt": "100.00",
    "amnt_sent_datetime": "2024-01-01 10:00:00+00:00",
    "amnt_received_datetime": "2024-01-01 10:00:05+00:00",
    "recipient_id": "RCPT00001",
    "trans_category": "Groceries",
    "payment_method": "QR Scan",
    "trans_status": "SUCCESS",
    "cust_age": "30",
    "sender_bank": "SBI",
    "receiver_bank": "HDFC",
    "from_state": "Maharashtra",
    "to_state": "Karnataka",
    "upi_app": "PhonePe",
    "transaction_device": "Android",
}


def make_row(**overrides: str) -> dict[str, str]:
    """One raw staging row, all text, with sensible defaults."""
    row = dict(_DEFAULT_ROW)
    row.update(overrides)
    return row


def make_staging(rows: list[dict[str, str]]) -> pd.DataFrame:
    """Build a staging frame in the fixed column order."""
    return pd.DataFrame(rows, columns=STAGING_COLUMNS)


def load_rows(conn, rows: list[dict[str, str]]) -> dict[str, int]:
    """Stage raw rows and normalize them into the target tables."""
    stage_rows(conn, make_staging(rows))
    return normalize_staging(conn, ingested_at=INGESTED_AT)


@pytest.fixture
def conn():
    """In-memory database with staging and target tables created."""
    connection = get_connection(":memory:")
    create_schema(connection)
    yield connection
    connection.close()
