"""
copies the raw CSV into stg_all exactly as it is. every field stays text,
nothing is cleaned here - that's the normalizer's job.
"""

import csv
import logging
import os

import pandas as pd

from config import STAGING_COLUMNS
from errors import LoadError

logger = logging.getLogger(__name__)


def read_raw_csv(filepath):
    """
    reads the file with every column as a string and blank cells as ''.
    only the structure is checked: 16 fields per line. the header line is
    skipped whatever it says, fields are taken in the fixed staging order.
    """
    if not os.path.exists(filepath):
        raise LoadError(f"raw CSV not found: {filepath}")

    logger.info("reading %s", filepath)
    # header=None so the field count comes from the header line and any
    # longer row is a parser error instead of being silently reshaped
    try:
        df = pd.read_csv(filepath, header=None, dtype=str, keep_default_na=False,
                         quoting=csv.QUOTE_MINIMAL)
    except pd.errors.ParserError as e:
        raise LoadError(f"malformed CSV {filepath}: {e}") from e
    except pd.errors.EmptyDataError as e:
        raise LoadError(f"empty CSV {filepath}") from e
    except UnicodeDecodeError as e:
        raise LoadError(f"{filepath} is not valid UTF-8: {e}") from e

    if len(df.columns) != len(STAGING_COLUMNS):
        raise LoadError(
            f"expected {len(STAGING_COLUMNS)} columns, got {len(df.columns)} in {filepath}")
    df = df.iloc[1:].reset_index(drop=True)
    df.columns = STAGING_COLUMNS

    # short rows come back padded with NaN
    short_rows = df.isna().any(axis=1)
    if short_rows.any():
        first = int(short_rows.idxmax()) + 2  # +1 header, +1 one-based
        raise LoadError(f"row {first} of {filepath} has fewer than "
                        f"{len(STAGING_COLUMNS)} fields")

    logger.info("%s rows, %s columns", f"{len(df):,}", len(df.columns))
    return df


def stage_rows(conn, raw_df):
    """append rows verbatim to stg_all. loading twice means duplicates, that's fine"""
    if list(raw_df.columns) != STAGING_COLUMNS:
        raise LoadError(f"staging frame has columns {list(raw_df.columns)}")
    rows = raw_df[STAGING_COLUMNS].itertuples(index=False, name=None)
    placeholders = ', '.join('?' for _ in STAGING_COLUMNS)
    with conn:
        conn.executemany(
            f"INSERT INTO stg_all ({', '.join(STAGING_COLUMNS)}) VALUES ({placeholders})",
            rows)
    logger.info("staged %s rows into stg_all", f"{len(raw_df):,}")
    return len(raw_df)


def load_csv(conn, filepath):
    return stage_rows(conn, read_raw_csv(filepath))


def clear_staging(conn):
    with conn:
        deleted = conn.execute("DELETE FROM stg_all").rowcount
    logger.info("cleared %s staging rows", f"{deleted:,}")
    return deleted
