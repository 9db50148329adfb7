# tests/conftest.py
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
import pytest
from loguru import logger

from first_contrib.config.app_config import AppConfig
from first_contrib.config.storage_config import MirrorConfig, StorageConfig
from first_contrib.observability.instrumentation import NoOpInstrumentation
from first_contrib.storage.accessor import StorageAccessor
from first_contrib.storage.backends import LocalMirrorBackend
from first_contrib.workflows.contributions_dataset import build_contributions_dataset


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


STREAM_SCHEMA = pa.schema([
    ("group_customer_no", pa.int64()),
    ("timestamp", pa.timestamp("us")),
    ("event_type", pa.string()),
    ("contribution_amt", pa.float64()),
    ("contribution_count", pa.int64()),
    ("ticket_count", pa.int64()),
    ("ticket_countAdj", pa.float64()),
    ("email_open_count", pa.int64()),
])


def row(entity: int, ts: str, event_type: str = "Ticket", amt=None, c_count=0, t_count=0, opens=0) -> Dict:
    return dict(
        group_customer_no=entity,
        timestamp=datetime.fromisoformat(ts),
        event_type=event_type,
        contribution_amt=amt,
        contribution_count=c_count,
        ticket_count=t_count,
        ticket_countAdj=float(t_count) * 1.1,
        email_open_count=opens,
    )


def write_stream(root: Path, rows: List[Dict], name: str = "stream/stream", tz: Optional[str] = None) -> Path:
    """
    <root>/<name>/partition=YYYY/part-0.parquet

    行序在每个 partition 内保持输入顺序；I 按 partition 路径排序后累计。
    tz 给定时 row() 的时间视为该时区本地时间。
    """
    df = pd.DataFrame(rows)
    schema = STREAM_SCHEMA
    if tz is not None:
        df["timestamp"] = df["timestamp"].dt.tz_localize(tz)
        i = schema.get_field_index("timestamp")
        schema = schema.set(i, pa.field("timestamp", pa.timestamp("us", tz=tz)))
    base = root / name
    for year, sub in df.groupby(df["timestamp"].dt.year):
        out = base / f"partition={int(year)}" / "part-0.parquet"
        out.parent.mkdir(parents=True, exist_ok=True)
        table = pa.Table.from_pandas(sub.reset_index(drop=True), schema=schema, preserve_index=False)
        pq.write_table(table, out)
    return base


@pytest.fixture
def stream_rows() -> List[Dict]:
    """
    entity 1（E1）  : t1 amt 10 → t2 qualifying 60 → t3 amt 5（t3 被 censor）
    entity 2（E2）  : 同一天两条 Contribution，仅后一条 qualifying
    entity 3        : 唯一一行就是 event → 0 行
    entity 4        : 第一行就是 event，后续全部 censor
    entity 5        : 无 event，跨 2023 / 2024
    entity 6        : 同一天两条 ticket，无 event
    """
    return [
        # ---- 2023 ----
        row(5, "2023-12-30T10:00:00", t_count=1, opens=3),
        # ---- 2024 ----
        row(1, "2024-01-02T10:00:00", "Contribution", amt=10, c_count=1),
        row(1, "2024-01-05T12:00:00", "Contribution", amt=60, c_count=2),
        row(1, "2024-01-07T09:00:00", "Contribution", amt=5, c_count=3),
        row(2, "2024-02-01T09:00:00", "Contribution", amt=20, c_count=1),
        row(2, "2024-02-01T15:00:00", "Contribution", amt=100, c_count=2),
        row(3, "2024-03-01T11:00:00", "Contribution", amt=500, c_count=1),
        row(4, "2024-01-10T08:00:00", "Contribution", amt=75, c_count=1),
        row(4, "2024-01-20T08:00:00", t_count=2),
        row(5, "2024-01-03T10:00:00", t_count=2, opens=4),
        row(6, "2024-04-01T08:00:00", t_count=1),
        row(6, "2024-04-01T18:00:00", t_count=5),
    ]


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    return tmp_path / "cold"


@pytest.fixture
def stream(cache_root: Path, stream_rows: List[Dict]) -> Path:
    return write_stream(cache_root, stream_rows)


@pytest.fixture
def accessor(cache_root: Path, mirror_root: Path) -> StorageAccessor:
    return StorageAccessor(cache_root, backends=[LocalMirrorBackend("cold", mirror_root)])


@pytest.fixture
def app_config(cache_root: Path, mirror_root: Path) -> AppConfig:
    return AppConfig(
        storage=StorageConfig(
            primary_root=str(cache_root),
            mirrors=[MirrorConfig(name="cold", root=str(mirror_root))],
        )
    )


@pytest.fixture
def contributions(app_config: AppConfig, accessor: StorageAccessor, stream: Path):
    return build_contributions_dataset(app_config, accessor=accessor, inst=NoOpInstrumentation())


@pytest.fixture
def make_row():
    return row


@pytest.fixture
def make_stream(cache_root: Path):
    def _make(rows: List[Dict], name: str = "stream/stream", tz: Optional[str] = None) -> Path:
        return write_stream(cache_root, rows, name=name, tz=tz)

    return _make
