#!filepath: first_contrib/storage/partition_writer.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
import pyarrow as pa

from first_contrib.engines.labels.base import require_columns
from first_contrib.engines.partition_merge_engine import PartitionMergeEngine
from first_contrib.engines.rollback_engine import RollbackEngine
from first_contrib.engines.stream_schema import StreamSchema
from first_contrib.storage.accessor import StagedPartition, StorageAccessor
from first_contrib.storage.stream_rows import StreamRowIndex
from first_contrib.utils.errors import StorageWriteError
from first_contrib.utils.logger import logs


class PartitionWriter:
    """
    PartitionWriter（dataset 行 → partition 文件）

    每个 partition batch：
      1. 按 I / prev_I 取回 full-width stream 行（只读涉及的 fragment）
      2. rollback + 去掉 adjusted 列
      3. 与磁盘上已有 partition 合并（incremental）
      4. stage 到 tmp

    全部 stage 成功 → commit → 重建 manifest；
    任一失败 → abort（删除全部 tmp）→ StorageWriteError。
    """

    def __init__(
            self,
            accessor: StorageAccessor,
            stream: StreamRowIndex,
            schema: StreamSchema,
            *,
            entity_col: str = "group_customer_no",
            index_col: str = "I",
            date_col: str = "date",
            rollback_events: bool = True,
    ) -> None:
        self.accessor = accessor
        self.stream = stream
        self.schema = schema
        self.entity_col = entity_col
        self.index_col = index_col
        self.date_col = date_col
        self.rollback_events = rollback_events

    # ==================================================
    # assemble
    # ==================================================
    def assemble(
            self,
            rows: pd.DataFrame,
            columns: Optional[Sequence[str]] = None,
            rollback_columns: Optional[Iterable[str]] = None,
    ) -> pa.Table:
        """
        rows: I, prev_I, entity, date, event（dedup 之后的 key 行）

        输出列顺序：I, entity, date, event, 其余 stream 列
        """
        require_columns(
            rows,
            [self.index_col, "prev_I", self.entity_col, self.date_col, "event"],
            who=self.__class__.__name__,
        )

        columns = list(columns if columns is not None else self.schema.write_columns)
        columns = [c for c in columns if c not in self.schema.adjusted_columns]
        if self.entity_col not in columns:
            columns.insert(0, self.entity_col)
        rollback_columns = frozenset(
            rollback_columns if rollback_columns is not None else self.schema.rollback_columns
        ) & set(columns)

        index = rows[self.index_col].to_numpy(dtype=np.int64)
        prev_index = rows["prev_I"].to_numpy(dtype=np.int64)
        event = rows["event"].to_numpy(dtype=bool)

        own = self.stream.take(index, columns)

        prev = None
        if self.rollback_events and rollback_columns and event.any():
            prev = self.stream.take(prev_index, sorted(rollback_columns))

        own = RollbackEngine(rollback_columns, self.rollback_events).execute(own, prev, event)

        dates = pd.to_datetime(rows[self.date_col]).dt.date
        head = {
            self.index_col: pa.array(index, type=pa.int64()),
            self.entity_col: own[self.entity_col],
            self.date_col: pa.array(dates, type=pa.date32()),
            "event": pa.array(event, type=pa.bool_()),
        }
        rest = [c for c in own.column_names if c not in head]

        return pa.table(
            list(head.values()) + [own[c] for c in rest],
            names=list(head) + rest,
        )

    # ==================================================
    # two-phase write
    # ==================================================
    def stage(
            self,
            name: str,
            partition_key: int,
            rows: pd.DataFrame,
            replace_all: bool = False,
            columns: Optional[Sequence[str]] = None,
            rollback_columns: Optional[Iterable[str]] = None,
    ) -> StagedPartition:
        table = self.assemble(rows, columns=columns, rollback_columns=rollback_columns)

        merger = PartitionMergeEngine(
            entity_col=self.entity_col,
            date_col=self.date_col,
            adjusted_columns=self.schema.adjusted_columns,
        )
        existing = None if replace_all else self.accessor.read_partition(name, partition_key)
        merged = merger.merge(existing, table)

        return self.accessor.stage_partition(name, partition_key, merged, replace_all=replace_all)

    def write_batches(
            self,
            name: str,
            batches: Dict[int, pd.DataFrame],
            replace_all: bool = False,
    ) -> List[StagedPartition]:
        """
        全部 partition stage 成功后才 commit。

        replace_all=True：full rebuild（整个 dataset 被替换）
        """
        self.accessor.begin(name, replace_all=replace_all)

        staged: List[StagedPartition] = []
        try:
            for key in sorted(batches):
                staged.append(
                    self.stage(name, key, batches[key], replace_all=replace_all)
                )
            self.accessor.commit(name, staged, replace_all=replace_all)
        except StorageWriteError:
            self.accessor.abort(name, staged)
            raise
        except (OSError, pa.ArrowException) as e:
            self.accessor.abort(name, staged)
            raise StorageWriteError(name, None, str(e)) from e

        self.accessor.refresh_manifest(
            name,
            mode="full" if replace_all else "incremental",
            date_column=self.date_col,
        )

        logs.info(
            f"[PartitionWriter] {name} partitions={[s.partition for s in staged]} "
            f"rows={sum(s.rows for s in staged)}"
        )
        return staged

    def write_partition(
            self,
            name: str,
            partition_key: int,
            rows: pd.DataFrame,
            columns: Optional[Sequence[str]] = None,
            rollback_columns: Optional[Iterable[str]] = None,
    ) -> StagedPartition:
        """单 partition 增量写（merge 进已有 partition）"""
        self.accessor.begin(name)
        staged = None
        try:
            staged = self.stage(
                name, partition_key, rows,
                columns=columns, rollback_columns=rollback_columns,
            )
            self.accessor.commit(name, [staged])
        except StorageWriteError:
            self.accessor.abort(name, [staged] if staged else [])
            raise

        self.accessor.refresh_manifest(name, mode="incremental", date_column=self.date_col)
        return staged
