"""Tests for the analytics query catalogue."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from analytics import (
    CATALOGUE,
    age_bracket,
    age_bracket_activity,
    cohort_cumulative_spend,
    daily_anomalies,
    hourly_activity,
    overall_summary,
    rolling_anomaly_flags,
    run_all_queries,
    top_corridors,
    top_origin_states,
    top_recipients,
    upi_app_volume,
)
from conftest import load_rows, make_row


def _txn(n: int, ts: str, amount: str, **overrides: str) -> dict[str, str]:
    return make_row(trans_id=f"T{n:05d}", amnt_sent_datetime=ts, trans_amnt=amount, **overrides)


def _daily_series(volumes: list[float], start: date = date(2024, 1, 1)) -> list[dict[str, str]]:
    return [
        _txn(i, f"{start + timedelta(days=i)} 12:00:00+00:00", str(volume))
        for i, volume in enumerate(volumes)
    ]


def test_overall_summary(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-02-01 08:00:00+00:00", "10"),
        _txn(2, "2024-01-15 08:00:00+00:00", "20"),
        _txn(3, "2024-03-01 08:00:00+05:30", "30"),
    ])

    summary = overall_summary(conn)

    assert list(summary.columns) == ["total_txns", "earliest_ts", "latest_ts"]
    assert summary.loc[0, "total_txns"] == 3
    assert summary.loc[0, "earliest_ts"] == "2024-01-15 08:00:00+00:00"
    assert summary.loc[0, "latest_ts"] == "2024-03-01 02:30:00+00:00"


def test_top_recipients_respects_limit_and_sorts_descending(conn) -> None:
    rows = [
        _txn(i, "2024-01-01 10:00:00+00:00", str(100 + i * 7), recipient_id=f"R{i:02d}")
        for i in range(25)
    ]
    load_rows(conn, rows)

    top = top_recipients(conn)
    top_five = top_recipients(conn, limit=5)

    assert list(top.columns) == ["recipient_id", "no_of_trans", "gross_volume", "avg_amount"]
    assert len(top) == 20
    assert len(top_five) == 5
    assert top["gross_volume"].is_monotonic_decreasing
    assert top.loc[0, "recipient_id"] == "R24"


def test_upi_app_and_state_rankings(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-01 10:00:00+00:00", "500", upi_app="PhonePe", from_state="Delhi"),
        _txn(2, "2024-01-01 10:00:00+00:00", "300", upi_app="Google Pay", from_state="Kerala"),
        _txn(3, "2024-01-01 10:00:00+00:00", "400", upi_app="Google Pay", from_state="Kerala"),
    ])

    apps = upi_app_volume(conn)
    states = top_origin_states(conn)

    assert list(apps.columns) == ["upi_app", "no_of_trans", "gross_volume", "avg_trans"]
    assert list(apps["upi_app"]) == ["Google Pay", "PhonePe"]
    assert apps.loc[0, "avg_trans"] == pytest.approx(350.0)
    assert list(states.columns) == ["from_state", "no_of_trans", "gross_volume"]
    assert list(states["from_state"]) == ["Kerala", "Delhi"]
    assert len(states) <= 20


def test_hourly_activity_buckets_by_utc_hour(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-01 10:15:00+00:00", "10"),
        _txn(2, "2024-01-02 10:59:59+00:00", "20"),
        _txn(3, "2024-01-01 23:00:00+05:30", "5"),
    ])

    hourly = hourly_activity(conn)

    assert list(hourly.columns) == ["hour", "no_of_trans", "gross_volume"]
    assert list(hourly["hour"]) == [10, 17]
    assert list(hourly["no_of_trans"]) == [2, 1]
    assert hourly.loc[0, "gross_volume"] == pytest.approx(30.0)


@pytest.mark.parametrize(
    "age,bracket",
    [
        (24, "under 25"),
        (25, "25-34"),
        (34, "25-34"),
        (35, "35-44"),
        (44, "35-44"),
        (45, "45-54"),
        (54, "45-54"),
        (55, "55 plus"),
    ],
)
def test_age_bracket_boundaries(age: int, bracket: str) -> None:
    assert age_bracket(age) == bracket


def test_age_bracket_activity_is_a_two_level_average(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-01 10:00:00+00:00", "100", cust_id="A", cust_age="25"),
        _txn(2, "2024-01-02 10:00:00+00:00", "200", cust_id="A", cust_age="25"),
        _txn(3, "2024-01-03 10:00:00+00:00", "30", cust_id="B", cust_age="34"),
        _txn(4, "2024-01-03 10:00:00+00:00", "70", cust_id="C", cust_age="35"),
        _txn(5, "2024-01-03 10:00:00+00:00", "70", cust_id="D", cust_age=""),
    ])

    brackets = age_bracket_activity(conn)

    assert list(brackets.columns) == ["age_bracket", "avg_trans_per_user", "avg_trans_amount"]
    assert list(brackets["age_bracket"]) == ["25-34", "35-44"]
    young = brackets.iloc[0]
    # per-user means are 150 and 30, a flat average would give 110
    assert young["avg_trans_per_user"] == pytest.approx(1.5)
    assert young["avg_trans_amount"] == pytest.approx(90.0)


def test_top_corridors(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-01 10:00:00+00:00", "10", cust_id="P1", recipient_id="R1"),
        _txn(2, "2024-01-01 10:00:00+00:00", "15", cust_id="P1", recipient_id="R1"),
        _txn(3, "2024-01-01 10:00:00+00:00", "40", cust_id="P2", recipient_id="R1"),
    ])

    corridors = top_corridors(conn)

    assert list(corridors.columns) == ["payer_id", "payee_id", "count", "total_amt"]
    assert list(zip(corridors["payer_id"], corridors["count"])) == [("P2", 1), ("P1", 2)]
    assert corridors["total_amt"].is_monotonic_decreasing
    assert len(corridors) <= 50


def test_cohort_cumulative_spend(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-10 10:00:00+00:00", "100", cust_id="P"),
        _txn(2, "2024-02-03 10:00:00+00:00", "50", cust_id="P"),
        _txn(3, "2024-02-20 10:00:00+00:00", "30", cust_id="Q"),
    ])

    cohorts = cohort_cumulative_spend(conn)

    assert list(cohorts.columns) == ["cohort_month", "month", "monthly_spend", "cumulative_spend"]
    assert cohorts.values.tolist() == [
        ["2024-02-01", "2024-02-01", 30.0, 30.0],
        ["2024-01-01", "2024-01-01", 100.0, 100.0],
        ["2024-01-01", "2024-02-01", 50.0, 150.0],
    ]


def test_rolling_window_excludes_current_day() -> None:
    daily = pd.DataFrame({
        "day": ["2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"],
        "daily_volume": [10.0, 20.0, 30.0, 40.0],
    })

    flagged = rolling_anomaly_flags(daily, window=2)

    assert np.isnan(flagged.loc[0, "roll_mean"])
    assert flagged.loc[1, "roll_mean"] == 10.0
    assert np.isnan(flagged.loc[1, "roll_sd"])
    assert flagged.loc[2, "roll_mean"] == 15.0
    assert flagged.loc[3, "roll_mean"] == 25.0
    assert flagged.loc[3, "roll_sd"] == pytest.approx(np.std([20.0, 30.0], ddof=1))
    assert list(flagged["flag"][:2]) == ["ok", "ok"]


@pytest.mark.parametrize("spike_index", [5, 35])
def test_daily_anomalies_flags_only_the_spike(conn, spike_index: int) -> None:
    volumes = [100.0] * 40
    volumes[spike_index] = 10000.0
    load_rows(conn, _daily_series(volumes))

    result = daily_anomalies(conn)

    assert list(result.columns) == ["day", "daily_volume", "roll_mean", "roll_sd", "flag"]
    assert len(result) == 40
    assert list(result["day"]) == sorted(result["day"], reverse=True)
    anomalies = result[result["flag"] == "ANOMALY"]
    assert list(anomalies["day"]) == [str(date(2024, 1, 1) + timedelta(days=spike_index))]
    assert set(result.loc[result["flag"] != "ANOMALY", "flag"]) == {"ok"}


def test_daily_anomalies_caps_rows(conn) -> None:
    load_rows(conn, _daily_series([100.0] * 12))

    result = daily_anomalies(conn, limit=5)

    assert len(result) == 5
    assert result.loc[0, "day"] == "2024-01-12"


def test_run_all_queries_returns_whole_catalogue(conn) -> None:
    load_rows(conn, _daily_series([100.0, 200.0, 300.0]))

    results = run_all_queries(conn)

    assert list(results) == list(CATALOGUE)
    assert all(isinstance(df, pd.DataFrame) for df in results.values())


def test_summed_amounts_are_rounded_to_cents(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-01 10:00:00+00:00", "0.10"),
        _txn(2, "2024-01-01 10:30:00+00:00", "0.20"),
    ])

    assert top_recipients(conn).loc[0, "gross_volume"] == 0.3
    assert upi_app_volume(conn).loc[0, "gross_volume"] == 0.3
    assert top_origin_states(conn).loc[0, "gross_volume"] == 0.3
    assert hourly_activity(conn).loc[0, "gross_volume"] == 0.3
    assert daily_anomalies(conn).loc[0, "daily_volume"] == 0.3


def test_hourly_activity_can_shift_to_a_local_clock(conn) -> None:
    load_rows(conn, [
        _txn(1, "2024-01-01 10:15:00+00:00", "10"),
        _txn(2, "2024-01-01 20:00:00+00:00", "20"),
        _txn(3, "2024-01-01 20:10:00+00:00", "20"),
    ])

    ist = hourly_activity(conn, offset_minutes=330)

    assert list(ist["hour"]) == [1, 15]
    assert list(ist["no_of_trans"]) == [2, 1]


def test_null_volume_days_are_skipped_by_the_rolling_window() -> None:
    volumes = [100.0] * 10 + [np.nan] + [100.0] * 5 + [10000.0]
    daily = pd.DataFrame({
        "day": [str(date(2024, 1, 1) + timedelta(days=i)) for i in range(len(volumes))],
        "daily_volume": volumes,
    })

    flagged = rolling_anomaly_flags(daily)

    assert flagged.loc[10, "flag"] == "ok"
    assert flagged.loc[11, "roll_mean"] == 100.0
    assert flagged.loc[11, "roll_sd"] == 0.0
    assert flagged.loc[16, "flag"] == "ANOMALY"


def test_day_with_only_null_amounts_does_not_hide_later_spikes(conn) -> None:
    volumes = [100.0] * 10 + [None] + [100.0] * 5 + [10000.0]
    rows = [
        _txn(i, f"{date(2024, 1, 1) + timedelta(days=i)} 12:00:00+00:00",
             "" if volume is None else str(volume))
        for i, volume in enumerate(volumes)
    ]
    load_rows(conn, rows)

    result = daily_anomalies(conn)

    assert len(result) == 17
    assert result.loc[0, "day"] == "2024-01-17"
    assert result.loc[0, "flag"] == "ANOMALY"
    assert list(result.loc[result["flag"] == "ANOMALY", "day"]) == ["2024-01-17"]
