#!filepath: first_contrib/dataset/facade.py
from __future__ import annotations

from datetime import date
from typing import Optional

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.dataset as ds

from first_contrib.config.dataset_config import DatasetConfig
from first_contrib.dataset.cache_state import (
    CacheState,
    CacheStatus,
    incremental_window_start,
    resolve_cache_state,
)
from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.pipeline import DatasetPipeline
from first_contrib.storage.accessor import StorageAccessor
from first_contrib.utils.datetime_utils import DateLike, DateTimeUtils
from first_contrib.utils.errors import CacheNotFoundError
from first_contrib.utils.logger import logs


class ContributionsDataset:
    """
    ContributionsDataset（Dataset Facade）

    get_dataset(since, until, rebuild_dataset)：
      1. 读 cache 状态（exists / max_date）
      2. resolve_cache_state() 决定路径
      3. 需要时在写锁内跑 pipeline（full / incremental）
      4. 永远从存储重新读取 [since, until) 切片（lazy）

    设计铁律：
      - 返回值永远是持久化存储上的 lazy dataset，不返回内存中间态
      - 写失败（StorageWriteError）/ 同步失败（SyncError）原样上抛
    """

    def __init__(
            self,
            accessor: StorageAccessor,
            cfg: DatasetConfig,
            pipeline: DatasetPipeline,
    ) -> None:
        self.accessor = accessor
        self.cfg = cfg
        self.pipeline = pipeline

    @property
    def name(self) -> str:
        return self.cfg.dataset_name

    # ==================================================
    # cache status
    # ==================================================
    def cache_status(self) -> CacheStatus:
        if not self.accessor.exists(self.name):
            return CacheStatus(exists=False)

        payload = self.accessor.manifest(self.name).load()
        if payload is not None and payload.max_date is not None:
            return CacheStatus(exists=True, max_date=payload.max_date, rows=payload.rows)

        # manifest 缺失 / 损坏 → 扫 date 列
        logs.warning(f"[ContributionsDataset] {self.name} manifest missing, scanning date column")
        dates = self.accessor.read_partitioned(self.name, columns=["date"]).to_table()["date"]
        max_date = pc.max(dates).as_py()
        return CacheStatus(exists=True, max_date=max_date, rows=len(dates))

    # ==================================================
    # entry
    # ==================================================
    def get_dataset(
            self,
            since: DateLike | None = None,
            until: DateLike | None = None,
            rebuild_dataset: Optional[bool] = None,
    ) -> ds.Dataset:
        since_d, until_d = DateTimeUtils.resolve_window(
            since, until, lookback_days=self.cfg.lookback_days
        )

        status = self.cache_status()
        state = resolve_cache_state(status.exists, status.max_date, until_d, rebuild_dataset)

        logs.info(
            f"[ContributionsDataset] {self.name} state={state.value} "
            f"cache_max_date={status.max_date} window=[{since_d}, {until_d})"
        )

        if state is CacheState.FORCE_READ and not status.exists:
            raise CacheNotFoundError(self.name)

        ctx = None
        if state.rebuilds:
            window_start = None
            if state is CacheState.CACHE_STALE:
                window_start = incremental_window_start(status.max_date, since_d)
            ctx = self.refresh(since_d, until_d, mode=state.mode, window_start=window_start)

        if not self.accessor.exists(self.name):
            logs.warning(f"[ContributionsDataset] {self.name} nothing materialized, returning empty dataset")
            return ds.dataset(self._empty_table(ctx))

        return self.read_slice(since_d, until_d)

    def refresh(
            self,
            since: date,
            until: date,
            mode: str,
            window_start: Optional[date] = None,
    ) -> DatasetContext:
        """单写者：整个 derive → write → sync 在写锁内完成"""
        with self.accessor.write_lock(self.name):
            return self.pipeline.run(since, until, mode=mode, window_start=window_start)

    def read_slice(self, since: DateLike, until: DateLike) -> ds.Dataset:
        dataset = self.accessor.read_partitioned(self.name, include_partition_key=True)
        lo = pa.scalar(DateTimeUtils.to_date(since), type=pa.date32())
        hi = pa.scalar(DateTimeUtils.to_date(until), type=pa.date32())
        return dataset.filter((ds.field("date") >= lo) & (ds.field("date") < hi))

    def invalidate(self) -> None:
        with self.accessor.write_lock(self.name):
            self.accessor.delete(self.name)

    # --------------------------------------------------
    def _empty_table(self, ctx: DatasetContext | None) -> pa.Table:
        entity_type = pa.string()
        if ctx is not None and ctx.stream is not None:
            entity_type = ctx.stream.schema.field(self.cfg.entity_column).type

        return pa.schema([
            (self.cfg.index_column, pa.int64()),
            (self.cfg.entity_column, entity_type),
            ("date", pa.date32()),
            ("event", pa.bool_()),
            (StorageAccessor.PARTITION_KEY, StorageAccessor.PARTITION_TYPE),
        ]).empty_table()
