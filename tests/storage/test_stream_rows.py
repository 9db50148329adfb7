#!filepath: tests/storage/test_stream_rows.py
from datetime import datetime

import numpy as np
import pytest

from first_contrib.storage.stream_rows import StreamRowIndex


def test_row_index_spans_fragments_in_path_order(accessor, stream):
    index = StreamRowIndex.open(accessor, "stream/stream")

    keys = index.scan_keys(["group_customer_no", "timestamp"])

    assert index.total == 12
    assert keys["I"].to_pylist() == list(range(12))
    # partition=2023 排在前面
    assert keys["group_customer_no"][0].as_py() == 5
    assert keys["timestamp"][0].as_py() == datetime(2023, 12, 30, 10)


def test_scan_keys_until_is_exclusive(accessor, stream):
    index = StreamRowIndex.open(accessor, "stream/stream")

    keys = index.scan_keys(["timestamp"], timestamp_column="timestamp", until=datetime(2024, 1, 5, 12))

    assert max(keys["timestamp"].to_pylist()) < datetime(2024, 1, 5, 12)
    assert keys["I"].to_pylist() == [0, 1, 9]


def test_scan_keys_until_is_local_time_for_tz_streams(accessor, make_stream, make_row):
    make_stream(
        [
            make_row(1, "2024-03-01T10:00:00"),
            make_row(1, "2024-03-09T21:00:00", "Contribution", amt=100, c_count=1),
            make_row(1, "2024-03-10T01:00:00", "Contribution", amt=100, c_count=2),
        ],
        tz="America/New_York",
    )
    index = StreamRowIndex.open(accessor, "stream/stream")

    # 2024-03-09 21:00 New York = 2024-03-10 02:00 UTC，仍在 until 之前
    keys = index.scan_keys(["timestamp"], timestamp_column="timestamp", until=datetime(2024, 3, 10))

    assert keys["I"].to_pylist() == [0, 1]


def test_take_preserves_requested_order_and_nulls(accessor, stream):
    index = StreamRowIndex.open(accessor, "stream/stream")

    out = index.take(np.array([9, -1, 0, 2]), ["group_customer_no", "contribution_count"])

    assert out["group_customer_no"].to_pylist() == [5, None, 5, 1]
    assert out["contribution_count"].to_pylist() == [0, None, 0, 2]


def test_take_all_missing(accessor, stream):
    index = StreamRowIndex.open(accessor, "stream/stream")

    out = index.take(np.array([-1, -1]), ["ticket_count"])

    assert out.num_rows == 2
    assert out["ticket_count"].null_count == 2


def test_take_out_of_range(accessor, stream):
    index = StreamRowIndex.open(accessor, "stream/stream")

    with pytest.raises(IndexError):
        index.take(np.array([12]), ["ticket_count"])
