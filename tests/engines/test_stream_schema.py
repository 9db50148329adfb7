#!filepath: tests/engines/test_stream_schema.py
import pyarrow as pa
import pytest

from first_contrib.config.dataset_config import DatasetConfig
from first_contrib.engines.stream_schema import StreamSchema

SCHEMA = pa.schema([
    ("group_customer_no", pa.int64()),
    ("timestamp", pa.timestamp("us")),
    ("event_type", pa.string()),
    ("contribution_amt", pa.float64()),
    ("contribution_amtAdj", pa.float64()),
    ("ticket_count", pa.int64()),
    ("email_open_count", pa.int64()),
    ("partition", pa.int32()),
])


def test_resolve_by_naming_convention():
    s = StreamSchema.resolve(SCHEMA, DatasetConfig())

    assert s.adjusted_columns == frozenset({"contribution_amtAdj"})
    assert s.adjusted_map["contribution_amt"] == "contribution_amtAdj"
    assert s.adjusted_map["ticket_count"] is None
    assert s.rollback_columns == frozenset({"contribution_amt", "ticket_count"})
    assert "contribution_amtAdj" not in s.write_columns
    assert "partition" not in s.write_columns


def test_explicit_overrides_win():
    cfg = DatasetConfig(
        rollback_columns=["email_open_count", "missing_col"],
        adjusted_columns={"ticket_count": "contribution_amtAdj"},
    )

    s = StreamSchema.resolve(SCHEMA, cfg)

    assert s.rollback_columns == frozenset({"email_open_count"})
    assert s.adjusted_map["ticket_count"] == "contribution_amtAdj"


def test_missing_key_column_raises():
    schema = SCHEMA.remove(SCHEMA.get_field_index("event_type"))

    with pytest.raises(ValueError, match="event_type"):
        StreamSchema.resolve(schema, DatasetConfig())
