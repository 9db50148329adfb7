#!filepath: first_contrib/engines/labels/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence, Union

import pandas as pd
import pyarrow as pa


class BaseLabelEngine(ABC):
    """
    BaseLabelEngine（FINAL / FROZEN）

    定位：
      - 纯内存计算，不做 I/O
      - 输入已物化为有序表（censor / dedup 需要有状态的顺序扫描）
      - 不关心配置来源
    """

    @abstractmethod
    def execute(self, frame: pd.DataFrame) -> pd.DataFrame:
        """
        输入：
          - 多 entity
          - 行顺序不做假设（engine 自己排序）

        输出：
          - append label 列
        """
        raise NotImplementedError


def require_columns(table: Union[pa.Table, pd.DataFrame], cols: Sequence[str], *, who: str) -> None:
    names = table.column_names if isinstance(table, pa.Table) else list(table.columns)
    missing = [c for c in cols if c not in names]
    if missing:
        raise ValueError(f"[{who}] missing required columns: {missing}")
