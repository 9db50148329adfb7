#!filepath: tests/dataset/test_contributions_dataset.py
from datetime import date

import pyarrow.dataset as ds
import pytest

from first_contrib.observability.instrumentation import NoOpInstrumentation
from first_contrib.utils.errors import CacheNotFoundError, StorageWriteError, SyncError, UserInputError
from first_contrib.utils.parquet_utils import ParquetAtomicWriter
from first_contrib.workflows.contributions_dataset import build_contributions_dataset

SINCE, UNTIL = "2020-01-01", "2025-01-01"


def _rows(dataset: ds.Dataset):
    return sorted(dataset.to_table().to_pylist(), key=lambda r: (r["group_customer_no"], r["date"]))


def _by_entity(rows, entity):
    return [r for r in rows if r["group_customer_no"] == entity]


def test_read_only_without_cache_raises(contributions):
    with pytest.raises(CacheNotFoundError):
        contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False)


def test_since_after_until_is_rejected(contributions):
    with pytest.raises(UserInputError):
        contributions.get_dataset("2024-02-01", "2024-01-01")


def test_full_build_labels_and_censors(contributions):
    rows = _rows(contributions.get_dataset(SINCE, UNTIL))

    # E1：t1 + t2（event），t3 被 censor
    e1 = _by_entity(rows, 1)
    assert [(r["date"], r["event"]) for r in e1] == [
        (date(2024, 1, 2), False),
        (date(2024, 1, 5), True),
    ]

    # E2：同一天两条 → 一行且 event
    e2 = _by_entity(rows, 2)
    assert len(e2) == 1 and e2[0]["event"] and e2[0]["I"] == 5

    # 单行 event entity 被排除
    assert _by_entity(rows, 3) == []

    # 每个 entity 最多一个 event，且不存在 event 之后的行
    for entity in {r["group_customer_no"] for r in rows}:
        mine = _by_entity(rows, entity)
        events = [r for r in mine if r["event"]]
        assert len(events) <= 1
        if events:
            assert all(r["date"] <= events[0]["date"] for r in mine)

    assert len(rows) == 7


def test_daily_uniqueness_and_partitions(contributions):
    rows = _rows(contributions.get_dataset(SINCE, UNTIL))

    keys = [(r["group_customer_no"], r["date"]) for r in rows]
    assert len(keys) == len(set(keys))
    assert all(r["partition"] == r["date"].year for r in rows)

    e5 = _by_entity(rows, 5)
    assert [r["partition"] for r in e5] == [2023, 2024]


def test_rollback_columns(contributions):
    rows = _rows(contributions.get_dataset(SINCE, UNTIL))

    e1_event = [r for r in _by_entity(rows, 1) if r["event"]][0]
    assert e1_event["contribution_amt"] == 10.0
    assert e1_event["contribution_count"] == 1

    # 第一条记录就是 event → 无历史可回退
    e4 = _by_entity(rows, 4)[0]
    assert e4["event"] and e4["contribution_amt"] is None

    # 非 event 行取自身记录（当天更早的那条），不取更晚记录
    e6 = _by_entity(rows, 6)[0]
    assert e6["ticket_count"] == 1

    assert "ticket_countAdj" not in contributions.get_dataset(SINCE, UNTIL).schema.names


def test_build_syncs_to_mirror(contributions, mirror_root):
    contributions.get_dataset(SINCE, UNTIL)

    mirrored = mirror_root / "dataset" / "contributions_model"
    assert (mirrored / "partition=2023" / "part-0.parquet").exists()
    assert (mirrored / "partition=2024" / "part-0.parquet").exists()


def test_slice_is_half_open(contributions):
    contributions.get_dataset(SINCE, UNTIL)

    sliced = contributions.get_dataset("2024-01-02", "2024-01-05", rebuild_dataset=False)
    dates = {r["date"] for r in sliced.to_table().to_pylist()}

    assert dates == {date(2024, 1, 2), date(2024, 1, 3)}


def test_cache_fresh_skips_pipeline(contributions, monkeypatch):
    contributions.get_dataset(SINCE, UNTIL)

    def _fail(*args, **kwargs):
        raise AssertionError("pipeline must not run")

    monkeypatch.setattr(contributions.pipeline, "run", _fail)

    # max_date = 2024-04-01 >= until
    out = contributions.get_dataset(SINCE, "2024-03-01")
    assert out.count_rows() > 0


def test_incremental_rebuild_is_idempotent(contributions, stream_rows, make_row, make_stream):
    # 先只构建到 2024-01-04
    contributions.get_dataset(SINCE, "2024-01-04", rebuild_dataset=True)
    partial = contributions.cache_status()
    assert partial.max_date == date(2024, 1, 3)

    incremental = _rows(contributions.get_dataset(SINCE, UNTIL))
    assert contributions.accessor.manifest(contributions.name).load().mode == "incremental"

    full = _rows(contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=True))
    assert incremental == full

    # 再跑一次增量（stream 追加新记录）
    make_stream(stream_rows + [make_row(6, "2024-12-01T10:00:00", t_count=9)])
    again = _rows(contributions.get_dataset(SINCE, UNTIL))
    assert len(again) == len(full) + 1
    assert len({(r["group_customer_no"], r["date"]) for r in again}) == len(again)


def test_boundary_day_is_reprocessed(contributions, stream_rows, make_row, make_stream):
    contributions.get_dataset(SINCE, "2024-04-02", rebuild_dataset=True)

    # 同一天（边界日 2024-04-01）更早的记录，追加到 stream 末尾
    make_stream(stream_rows + [make_row(6, "2024-04-01T07:00:00", t_count=7)])
    rows = _rows(contributions.get_dataset(SINCE, UNTIL))

    e6 = _by_entity(rows, 6)
    assert len(e6) == 1
    assert e6[0]["ticket_count"] == 7


def test_write_failure_keeps_cache_and_skips_sync(contributions, mirror_root, monkeypatch):
    contributions.get_dataset(SINCE, "2024-01-04", rebuild_dataset=True)
    before = _rows(contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False))

    def _boom(name, partition, table, replace_all=False):
        raise StorageWriteError(name, partition, "injected")

    monkeypatch.setattr(contributions.accessor, "stage_partition", _boom)
    mirrored = mirror_root / "dataset" / "contributions_model"
    mirrored_before = sorted(p.name for p in mirrored.rglob("*.parquet"))

    with pytest.raises(StorageWriteError):
        contributions.get_dataset(SINCE, UNTIL)

    monkeypatch.undo()
    after = _rows(contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False))
    assert after == before
    assert sorted(p.name for p in mirrored.rglob("*.parquet")) == mirrored_before
    assert not contributions.accessor.staging_path(contributions.name).exists()


def test_empty_derivation_returns_empty_dataset(app_config, accessor, make_stream, make_row):
    make_stream([make_row(1, "2019-01-01T00:00:00")])
    contributions = build_contributions_dataset(app_config, accessor=accessor, inst=NoOpInstrumentation())

    out = contributions.get_dataset(SINCE, UNTIL)

    assert out.count_rows() == 0
    assert {"I", "group_customer_no", "date", "event", "partition"} <= set(out.schema.names)
    assert not accessor.exists(contributions.name)


def test_tz_aware_stream_keeps_event_on_last_local_day(app_config, accessor, make_stream, make_row):
    make_stream(
        [
            make_row(1, "2024-03-01T10:00:00"),
            make_row(1, "2024-03-09T21:00:00", "Contribution", amt=100, c_count=1),
        ],
        tz="America/New_York",
    )
    contributions = build_contributions_dataset(app_config, accessor=accessor, inst=NoOpInstrumentation())

    rows = _rows(contributions.get_dataset("2024-01-01", "2024-03-10"))

    assert [(r["date"], r["event"]) for r in rows] == [
        (date(2024, 3, 1), False),
        (date(2024, 3, 9), True),
    ]


def test_failed_commit_leaves_previous_cache(contributions, monkeypatch):
    # 只有 2023 partition（max_date = 2023-12-30），增量会写 2023 + 2024
    contributions.get_dataset(SINCE, "2024-01-01", rebuild_dataset=True)
    before = _rows(contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False))
    manifest_before = contributions.accessor.manifest(contributions.name).load()

    real_commit = ParquetAtomicWriter.commit
    calls = []

    def _flaky(tmp, target):
        calls.append(target)
        if len(calls) == 2:
            raise OSError("rename failed")
        real_commit(tmp, target)

    monkeypatch.setattr("first_contrib.storage.accessor.ParquetAtomicWriter.commit", _flaky)

    with pytest.raises(StorageWriteError):
        contributions.get_dataset(SINCE, UNTIL)

    monkeypatch.undo()
    assert len(calls) == 2
    assert _rows(contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False)) == before
    assert contributions.accessor.manifest(contributions.name).load() == manifest_before

    base = contributions.accessor.path(contributions.name)
    assert sorted(p.parent.name for p in base.rglob("part-0.parquet")) == ["partition=2023"]
    assert not [p for p in base.rglob("*") if p.name.startswith(".")]

    # 下一次增量正常完成
    assert len(_rows(contributions.get_dataset(SINCE, UNTIL))) == 7


def test_sync_failure_reaches_caller_after_commit(contributions, mirror_root, monkeypatch):
    def _offline(local_dir, dataset_name, overwrite):
        raise OSError("mirror offline")

    monkeypatch.setattr(contributions.accessor.backends[0], "push", _offline)

    with pytest.raises(SyncError):
        contributions.get_dataset(SINCE, UNTIL)

    # 本地 cache 已 commit，只读即可拿到完整结果
    rows = _rows(contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False))
    assert len(rows) == 7
    assert contributions.cache_status().max_date == date(2024, 4, 1)
    assert not (mirror_root / "dataset" / "contributions_model").exists()


def test_invalidate_drops_cache(contributions):
    contributions.get_dataset(SINCE, UNTIL)

    contributions.invalidate()

    assert not contributions.cache_status().exists
    with pytest.raises(CacheNotFoundError):
        contributions.get_dataset(SINCE, UNTIL, rebuild_dataset=False)
    assert contributions.get_dataset(SINCE, UNTIL).count_rows() == 7
