#!filepath: first_contrib/engines/rollback_engine.py
from __future__ import annotations

from typing import Iterable

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc


class RollbackEngine:
    """
    RollbackEngine（纯 pyarrow）

    输入：
      - own   : 每个 dataset 行自身 stream 记录的 full-width 列（按 I 取回）
      - prev  : 同一 entity 上一条 stream 记录的 rollback 列（按 prev_I 取回）
      - event : 行是否为 event

    规则：
      - 非 event 行：rollback 列 = 自身记录的值（永远不取当天更晚的记录）
      - event 行  ：rollback 列 = prev 的值；没有 prev → null
        （event 本身的 contribution 不能泄漏进自己的特征）
    """

    def __init__(self, rollback_columns: Iterable[str], rollback_events: bool = True) -> None:
        self.rollback_columns = sorted(rollback_columns)
        self.rollback_events = rollback_events

    def execute(self, own: pa.Table, prev: pa.Table | None, event: np.ndarray) -> pa.Table:
        if not self.rollback_events or not self.rollback_columns or prev is None:
            return own

        event = np.asarray(event, dtype=bool)
        if len(event) != own.num_rows or prev.num_rows != own.num_rows:
            raise ValueError(
                f"[RollbackEngine] length mismatch own={own.num_rows} "
                f"prev={prev.num_rows} event={len(event)}"
            )

        if not event.any():
            return own

        mask = pa.array(event, type=pa.bool_())
        own = own.combine_chunks()
        prev = prev.combine_chunks()

        for col in self.rollback_columns:
            if col not in own.column_names:
                continue
            idx = own.schema.get_field_index(col)
            field = own.schema.field(idx)
            rolled = pc.if_else(mask, prev[col].cast(field.type), own[col])
            own = own.set_column(idx, field, rolled)

        return own
