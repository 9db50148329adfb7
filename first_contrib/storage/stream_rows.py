from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.dataset as ds

from first_contrib.storage.accessor import StorageAccessor
from first_contrib.utils.logger import logs


class StreamRowIndex:
    """
    StreamRowIndex（原始行号 I ↔ fragment slice）

    语义：
      - I = stream 全量扫描（fragment 按路径排序）中的 0-based 行号
      - starts[k] = 第 k 个 fragment 的首行 I
      - stream 只追加 → 已有 I 稳定

    用途：
      - scan_keys(): 只读 key 列（projection），附加 I
      - take(): 按 I 取回 full-width 行，只读涉及到的 fragment
    """

    def __init__(self, fragments: Sequence[ds.Fragment], schema: pa.Schema, index_column: str = "I"):
        self.fragments: List[ds.Fragment] = list(fragments)
        self.schema = schema
        self.index_column = index_column

        counts = np.array([f.count_rows() for f in self.fragments], dtype=np.int64)
        self.starts = np.concatenate([[0], np.cumsum(counts)[:-1]]).astype(np.int64)
        self.total = int(counts.sum())

    @classmethod
    def open(cls, accessor: StorageAccessor, name: str, index_column: str = "I") -> "StreamRowIndex":
        dataset = accessor.read_partitioned(name)
        fragments = sorted(dataset.get_fragments(), key=lambda f: f.path)
        logs.debug(f"[StreamRowIndex] {name} fragments={len(fragments)}")
        return cls(fragments, dataset.schema, index_column=index_column)

    # --------------------------------------------------
    def scan_keys(
            self,
            columns: Sequence[str],
            timestamp_column: Optional[str] = None,
            until: Optional[object] = None,
    ) -> pa.Table:
        """
        读取 key 列 + I；until 给定时只保留 timestamp < until
        """
        index_type = pa.int64()
        out_schema = pa.schema(
            [self.schema.field(c) for c in columns] + [pa.field(self.index_column, index_type)]
        )

        pieces = []
        for start, frag in zip(self.starts, self.fragments):
            t = frag.to_table(schema=self.schema, columns=list(columns))
            idx = pa.array(np.arange(start, start + t.num_rows, dtype=np.int64), type=index_type)
            pieces.append(t.append_column(self.index_column, idx))

        if not pieces:
            return out_schema.empty_table()

        table = pa.concat_tables(pieces)

        if timestamp_column is not None and until is not None:
            ts_type = self.schema.field(timestamp_column).type
            bound = pd.Timestamp(until)
            # naive until 视为列时区的本地时间
            if getattr(ts_type, "tz", None) and bound.tzinfo is None:
                bound = bound.tz_localize(ts_type.tz)
            table = table.filter(pc.less(table[timestamp_column], pa.scalar(bound, type=ts_type)))

        return table

    # --------------------------------------------------
    def take(self, indices: np.ndarray, columns: Sequence[str]) -> pa.Table:
        """
        按 I 取行，结果行序与 indices 一致；indices < 0 → 整行 null
        """
        indices = np.asarray(indices, dtype=np.int64)
        columns = list(columns)
        out_schema = pa.schema([self.schema.field(c) for c in columns])

        if len(indices) == 0:
            return out_schema.empty_table()

        if np.any(indices >= self.total):
            raise IndexError(f"[StreamRowIndex] row index out of range (total={self.total})")

        valid_pos = np.flatnonzero(indices >= 0)
        valid = indices[valid_pos]
        frag_ids = np.searchsorted(self.starts, valid, side="right") - 1

        pieces: List[pa.Table] = []
        order: List[np.ndarray] = []
        for fid in np.unique(frag_ids):
            mask = frag_ids == fid
            local = valid[mask] - self.starts[fid]
            t = self.fragments[fid].to_table(schema=self.schema, columns=columns)
            pieces.append(t.take(pa.array(local)))
            order.append(valid_pos[mask])

        if not pieces:
            return pa.table(
                [pa.nulls(len(indices), type=f.type) for f in out_schema],
                schema=out_schema,
            )

        combined = pa.concat_tables(pieces)
        positions = np.concatenate(order)

        # combined 第 j 行 → 结果第 positions[j] 行
        inverse = np.full(len(indices), -1, dtype=np.int64)
        inverse[positions] = np.arange(len(positions), dtype=np.int64)

        return combined.take(pa.array(inverse, mask=inverse < 0))
