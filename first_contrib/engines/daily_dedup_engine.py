#!filepath: first_contrib/engines/daily_dedup_engine.py
from __future__ import annotations

import pandas as pd

from first_contrib.engines.labels.base import require_columns


class DailyDedupEngine:
    """
    DailyDedupEngine（entity × day → 1 行）

    语义：
      - date = timestamp 截断到日
      - 同一 (entity, date) 内排序：event desc → timestamp asc → I asc
      - 取每组第一行

    保证：
      - 当天只要有 event，留下的那行 event=True
      - 否则留下当天时间最早的一行（I 作确定性 tie-break）
    """

    def __init__(
            self,
            *,
            entity_col: str = "group_customer_no",
            timestamp_col: str = "timestamp",
            index_col: str = "I",
            date_col: str = "date",
    ) -> None:
        self.entity_col = entity_col
        self.timestamp_col = timestamp_col
        self.index_col = index_col
        self.date_col = date_col

    def execute(self, frame: pd.DataFrame) -> pd.DataFrame:
        require_columns(
            frame,
            [self.entity_col, self.timestamp_col, self.index_col, "event"],
            who=self.__class__.__name__,
        )

        df = frame.copy()
        df[self.date_col] = pd.to_datetime(df[self.timestamp_col]).dt.normalize()

        df = df.sort_values(
            [self.entity_col, self.date_col, "event", self.timestamp_col, self.index_col],
            ascending=[True, True, False, True, True],
            kind="mergesort",
        )
        df = df.drop_duplicates([self.entity_col, self.date_col], keep="first")

        return df.reset_index(drop=True)
