#!filepath: tests/engines/test_daily_dedup_engine.py
import pandas as pd

from first_contrib.engines.daily_dedup_engine import DailyDedupEngine


def _frame(rows):
    df = pd.DataFrame(rows, columns=["group_customer_no", "timestamp", "event", "I"])
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    return df


def test_event_wins_over_earlier_row_same_day():
    """E2：同一天两条，只有后一条是 event → 保留 event 行"""
    df = _frame([
        (2, "2024-02-01 09:00", False, 4),
        (2, "2024-02-01 15:00", True, 5),
    ])

    out = DailyDedupEngine().execute(df)

    assert len(out) == 1
    assert out["event"].item()
    assert out["I"].item() == 5


def test_first_by_timestamp_without_event():
    df = _frame([
        (6, "2024-04-01 18:00", False, 11),
        (6, "2024-04-01 08:00", False, 10),
    ])

    out = DailyDedupEngine().execute(df)

    assert out["I"].tolist() == [10]
    assert out["date"].tolist() == [pd.Timestamp("2024-04-01")]


def test_one_row_per_entity_and_day():
    df = _frame([
        (1, "2024-01-01 01:00", False, 0),
        (1, "2024-01-01 02:00", False, 1),
        (1, "2024-01-02 01:00", False, 2),
        (2, "2024-01-01 03:00", False, 3),
    ])

    out = DailyDedupEngine().execute(df)

    assert not out.duplicated(["group_customer_no", "date"]).any()
    assert out["I"].tolist() == [0, 2, 3]


def test_same_timestamp_ties_broken_by_row_index():
    df = _frame([
        (1, "2024-01-01 01:00", False, 9),
        (1, "2024-01-01 01:00", False, 3),
    ])

    assert DailyDedupEngine().execute(df)["I"].tolist() == [3]
