"""
the fixed query catalogue run against users / recipients / transactions.

column names and row order of every result are what the report and the
dashboard read, so treat them as a contract. everything here is read-only.
"""

import logging

import numpy as np
import pandas as pd

from config import (ANOMALY_ROW_LIMIT, ANOMALY_SIGMA, ANOMALY_WINDOW_DAYS,
                    CORRIDOR_LIMIT, TOP_N)
from db_utils import run_query

logger = logging.getLogger(__name__)

AGE_BRACKETS = ['under 25', '25-34', '35-44', '45-54', '55 plus']

QUERIES = {

    "overall_summary": """
        SELECT COUNT(*) AS total_txns,
               MIN(trans_ts) AS earliest_ts,
               MAX(trans_ts) AS latest_ts
        FROM transactions
    """,

    "top_recipients": """
        SELECT payee_id AS recipient_id,
               COUNT(*) AS no_of_trans,
               ROUND(SUM(amount), 2) AS gross_volume,
               ROUND(AVG(amount), 2) AS avg_amount
        FROM transactions
        GROUP BY payee_id
        ORDER BY gross_volume DESC
        LIMIT :limit
    """,

    "upi_app_volume": """
        SELECT upi_app,
               COUNT(*) AS no_of_trans,
               ROUND(SUM(amount), 2) AS gross_volume,
               ROUND(AVG(amount), 2) AS avg_trans
        FROM transactions
        GROUP BY upi_app
        ORDER BY gross_volume DESC
        LIMIT :limit
    """,

    # hour of the stored (UTC) timestamp, shifted by :shift for a local clock
    "hourly_activity": """
        SELECT CAST(strftime('%H', trans_ts, :shift) AS INTEGER) AS hour,
               COUNT(*) AS no_of_trans,
               ROUND(SUM(amount), 2) AS gross_volume
        FROM transactions
        GROUP BY hour
        ORDER BY no_of_trans DESC, hour
    """,

    "top_origin_states": """
        SELECT from_state,
               COUNT(*) AS no_of_trans,
               ROUND(SUM(amount), 2) AS gross_volume
        FROM transactions
        GROUP BY from_state
        ORDER BY gross_volume DESC
        LIMIT :limit
    """,

    # average of per-user averages, not a flat average over the bracket's txns
    "age_bracket_activity": """
        WITH age_grp AS (
            SELECT u.user_id,
                   u.cust_age AS age,
                   COUNT(t.trans_id) AS no_of_trans,
                   AVG(t.amount) AS avg_amount
            FROM users u
            JOIN transactions t ON u.user_id = t.payer_id
            WHERE u.cust_age IS NOT NULL
            GROUP BY u.user_id, u.cust_age
        )
        SELECT CASE
                   WHEN age < 25 THEN 'under 25'
                   WHEN age BETWEEN 25 AND 34 THEN '25-34'
                   WHEN age BETWEEN 35 AND 44 THEN '35-44'
                   WHEN age BETWEEN 45 AND 54 THEN '45-54'
                   ELSE '55 plus'
               END AS age_bracket,
               ROUND(AVG(no_of_trans), 2) AS avg_trans_per_user,
               ROUND(AVG(avg_amount), 2) AS avg_trans_amount
        FROM age_grp
        GROUP BY age_bracket
        ORDER BY age_bracket
    """,

    "top_corridors": """
        SELECT payer_id,
               payee_id,
               COUNT(*) AS count,
               ROUND(SUM(amount), 2) AS total_amt
        FROM transactions
        GROUP BY payer_id, payee_id
        ORDER BY total_amt DESC
        LIMIT :limit
    """,

    # cohort = month of the payer's first transaction
    "cohort_cumulative_spend": """
        WITH first_tx AS (
            SELECT payer_id,
                   strftime('%Y-%m-01', MIN(trans_ts)) AS cohort_month
            FROM transactions
            GROUP BY payer_id
        ),
        monthly_spend AS (
            SELECT payer_id,
                   strftime('%Y-%m-01', trans_ts) AS month,
                   SUM(amount) AS spend
            FROM transactions
            GROUP BY payer_id, strftime('%Y-%m-01', trans_ts)
        ),
        cohort_monthly AS (
            SELECT f.cohort_month,
                   m.month,
                   SUM(m.spend) AS cohort_month_spend
            FROM first_tx f
            JOIN monthly_spend m ON f.payer_id = m.payer_id
            GROUP BY f.cohort_month, m.month
        )
        SELECT cohort_month,
               month,
               ROUND(cohort_month_spend, 2) AS monthly_spend,
               ROUND(SUM(cohort_month_spend) OVER (
                   PARTITION BY cohort_month ORDER BY month
                   ROWS BETWEEN UNBOUNDED PRECEDING AND CURRENT ROW), 2) AS cumulative_spend
        FROM cohort_monthly
        ORDER BY cohort_month DESC, month
    """,

    # rolling stats for this one are done in pandas, see daily_anomalies()
    "daily_volume": """
        SELECT date(trans_ts) AS day,
               ROUND(SUM(amount), 2) AS daily_volume
        FROM transactions
        WHERE trans_ts IS NOT NULL
        GROUP BY date(trans_ts)
        ORDER BY day
    """,
}


# ---- 5.1 volume & rankings ----

def overall_summary(conn):
    return run_query(QUERIES['overall_summary'], conn)


def top_recipients(conn, limit=TOP_N):
    return run_query(QUERIES['top_recipients'], conn, {'limit': limit})


def upi_app_volume(conn, limit=TOP_N):
    return run_query(QUERIES['upi_app_volume'], conn, {'limit': limit})


def top_origin_states(conn, limit=TOP_N):
    return run_query(QUERIES['top_origin_states'], conn, {'limit': limit})


def hourly_activity(conn, offset_minutes=0):
    """offset_minutes shifts the bucket clock, 330 gives IST hours"""
    return run_query(QUERIES['hourly_activity'], conn,
                     {'shift': f"{int(offset_minutes):+d} minutes"})


# ---- customer level ----

def age_bracket_activity(conn):
    return run_query(QUERIES['age_bracket_activity'], conn)


def age_bracket(age):
    """same CASE as the SQL, handy for checking boundaries outside the db"""
    if age < 25:
        return 'under 25'
    if 25 <= age <= 34:
        return '25-34'
    if 35 <= age <= 44:
        return '35-44'
    if 45 <= age <= 54:
        return '45-54'
    return '55 plus'


def top_corridors(conn, limit=CORRIDOR_LIMIT):
    return run_query(QUERIES['top_corridors'], conn, {'limit': limit})


def cohort_cumulative_spend(conn):
    return run_query(QUERIES['cohort_cumulative_spend'], conn)


# ---- rolling z-score on daily volume ----

def rolling_anomaly_flags(daily, window=ANOMALY_WINDOW_DAYS, sigma=ANOMALY_SIGMA):
    """
    daily needs 'day' and 'daily_volume'. for each day, mean and sample std of
    the previous `window` daily buckets (current day excluded). null volumes in
    the window are skipped; fewer than two non-null prior buckets -> roll_sd is
    NaN and the day can't be flagged.
    """
    daily = daily.sort_values('day').reset_index(drop=True)
    volumes = daily['daily_volume'].to_numpy(dtype=float)

    roll_mean = np.full(len(volumes), np.nan)
    roll_sd = np.full(len(volumes), np.nan)
    for i in range(len(volumes)):
        prior = volumes[max(0, i - window):i]
        prior = prior[~np.isnan(prior)]
        if len(prior) >= 1:
            roll_mean[i] = prior.mean()
        if len(prior) >= 2:
            roll_sd[i] = prior.std(ddof=1)

    out = pd.DataFrame({
        'day': daily['day'],
        'daily_volume': volumes,
        'roll_mean': roll_mean,
        'roll_sd': roll_sd,
    })
    is_anomaly = out['roll_sd'].notna() & (
        (out['daily_volume'] - out['roll_mean']).abs() > sigma * out['roll_sd'])
    out['flag'] = np.where(is_anomaly, 'ANOMALY', 'ok')
    return out


def daily_anomalies(conn, window=ANOMALY_WINDOW_DAYS, sigma=ANOMALY_SIGMA,
                    limit=ANOMALY_ROW_LIMIT):
    daily = run_query(QUERIES['daily_volume'], conn)
    flagged = rolling_anomaly_flags(daily, window, sigma)
    flagged[['daily_volume', 'roll_mean', 'roll_sd']] = \
        flagged[['daily_volume', 'roll_mean', 'roll_sd']].round(2)
    flagged = flagged.sort_values('day', ascending=False).head(limit)
    return flagged.reset_index(drop=True)


# name -> callable, in report order
CATALOGUE = {
    'overall_summary': overall_summary,
    'top_recipients': top_recipients,
    'upi_app_volume': upi_app_volume,
    'hourly_activity': hourly_activity,
    'top_origin_states': top_origin_states,
    'age_bracket_activity': age_bracket_activity,
    'top_corridors': top_corridors,
    'cohort_cumulative_spend': cohort_cumulative_spend,
    'daily_anomalies': daily_anomalies,
}


def run_all_queries(conn):
    results = {}
    for name, query_fn in CATALOGUE.items():
        try:
            results[name] = query_fn(conn)
        except Exception:
            logger.error("query %s failed", name)
            raise
        logger.info("  %s: %d rows", name, len(results[name]))
    return results
