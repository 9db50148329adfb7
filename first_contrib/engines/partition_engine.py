#!filepath: first_contrib/engines/partition_engine.py
from __future__ import annotations

from typing import Dict

import pandas as pd

from first_contrib.engines.labels.base import require_columns


class PartitionEngine:
    """
    PartitionEngine（纯函数）

    partition = calendar_year(timestamp)

    输出 {partition_key -> rows}，key 升序；写入由独立 step 负责。
    """

    def __init__(self, *, timestamp_col: str = "timestamp", partition_col: str = "partition") -> None:
        self.timestamp_col = timestamp_col
        self.partition_col = partition_col

    def assign(self, frame: pd.DataFrame) -> pd.DataFrame:
        require_columns(frame, [self.timestamp_col], who=self.__class__.__name__)
        df = frame.copy()
        df[self.partition_col] = pd.to_datetime(df[self.timestamp_col]).dt.year.astype("int32")
        return df

    def split(self, frame: pd.DataFrame) -> Dict[int, pd.DataFrame]:
        df = self.assign(frame)
        return {
            int(key): rows.reset_index(drop=True)
            for key, rows in sorted(df.groupby(self.partition_col, sort=True), key=lambda kv: kv[0])
        }
