#!filepath: first_contrib/engines/partition_merge_engine.py
from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd
import pyarrow as pa

from first_contrib.engines.labels.base import require_columns
from first_contrib.utils.logger import logs


class PartitionMergeEngine:
    """
    PartitionMergeEngine（单 partition，纯 pyarrow）

    merge(existing, new)：
      1. existing 中与 new 同 (entity, date) 的行被 new 替换
      2. schema 对账：任一侧缺失的列补 null（permissive 提升）
      3. adjusted 列一律丢弃（包括旧文件里遗留的）
      4. 按 (entity, date) 排序输出

    existing 为 None → 只做 3 / 4。
    """

    def __init__(
            self,
            *,
            entity_col: str = "group_customer_no",
            date_col: str = "date",
            adjusted_columns: Iterable[str] = (),
    ) -> None:
        self.entity_col = entity_col
        self.date_col = date_col
        self.adjusted_columns = frozenset(adjusted_columns)

    def merge(self, existing: Optional[pa.Table], new: pa.Table) -> pa.Table:
        keys = [self.entity_col, self.date_col]
        require_columns(new, keys, who=self.__class__.__name__)

        if existing is not None and existing.num_rows > 0:
            require_columns(existing, keys, who=self.__class__.__name__)
            kept = existing.filter(pa.array(~self._replaced(existing, new), type=pa.bool_()))
            logs.debug(
                f"[PartitionMergeEngine] existing={existing.num_rows} "
                f"replaced={existing.num_rows - kept.num_rows} new={new.num_rows}"
            )
            merged = pa.concat_tables([new, kept], promote_options="permissive")
        else:
            merged = new

        drop = [c for c in merged.column_names if c in self.adjusted_columns]
        if drop:
            merged = merged.drop_columns(drop)

        return merged.sort_by([(self.entity_col, "ascending"), (self.date_col, "ascending")])

    def _replaced(self, existing: pa.Table, new: pa.Table):
        keys = [self.entity_col, self.date_col]
        new_keys = pd.MultiIndex.from_frame(new.select(keys).to_pandas())
        old_keys = pd.MultiIndex.from_frame(existing.select(keys).to_pandas())
        return old_keys.isin(new_keys)
