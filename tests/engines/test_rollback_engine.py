#!filepath: tests/engines/test_rollback_engine.py
import numpy as np
import pyarrow as pa

from first_contrib.engines.rollback_engine import RollbackEngine


def _own():
    return pa.table({
        "contribution_amt": pa.array([10.0, 60.0], type=pa.float64()),
        "ticket_count": pa.array([1, 2], type=pa.int64()),
        "email_open_count": pa.array([5, 6], type=pa.int64()),
    })


def test_event_rows_take_previous_record_values():
    prev = pa.table({
        "contribution_amt": pa.array([None, 10.0], type=pa.float64()),
        "ticket_count": pa.array([None, 1], type=pa.int64()),
    })

    out = RollbackEngine({"contribution_amt", "ticket_count"}).execute(
        _own(), prev, np.array([False, True])
    )

    assert out["contribution_amt"].to_pylist() == [10.0, 10.0]
    assert out["ticket_count"].to_pylist() == [1, 1]
    # 非 rollback 列不受影响
    assert out["email_open_count"].to_pylist() == [5, 6]


def test_event_without_previous_record_becomes_null():
    prev = pa.table({"ticket_count": pa.nulls(2, type=pa.int64())})

    out = RollbackEngine({"ticket_count"}).execute(_own(), prev, np.array([True, False]))

    assert out["ticket_count"].to_pylist() == [None, 2]


def test_disabled_rollback_keeps_own_values():
    prev = pa.table({"ticket_count": pa.array([0, 0], type=pa.int64())})

    out = RollbackEngine({"ticket_count"}, rollback_events=False).execute(
        _own(), prev, np.array([True, True])
    )

    assert out["ticket_count"].to_pylist() == [1, 2]
