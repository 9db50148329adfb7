#!filepath: first_contrib/pipeline/context.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import pandas as pd

from first_contrib.engines.stream_schema import StreamSchema
from first_contrib.storage.stream_rows import StreamRowIndex


@dataclass
class DatasetContext:
    """
    DatasetContext（FINAL / FROZEN）

    设计原则：
      - Step 之间唯一通信载体
      - 只存“事实 / 中间态”，不存业务逻辑
      - full / incremental 只是 mode 差异
    """

    # -------------------------
    # identity
    # -------------------------
    dataset_name: str
    stream_name: str
    since: date
    until: date
    mode: str = "full"  # "full" | "incremental"

    # 增量模式下 = max(cache max_date, since)
    window_start: Optional[date] = None

    # -------------------------
    # data layer
    # -------------------------
    schema: Optional[StreamSchema] = None
    keys: Optional[pd.DataFrame] = None
    stream: Optional[StreamRowIndex] = None
    batches: Dict[int, pd.DataFrame] = field(default_factory=dict)

    # -------------------------
    # result layer
    # -------------------------
    written_partitions: List[int] = field(default_factory=list)
    written_rows: int = 0
    synced: bool = False

    # -------- PipelineRuntime flags --------
    abort_pipeline: bool = False
    abort_reason: Optional[str] = None

    @property
    def replace_all(self) -> bool:
        return self.mode == "full"

    @property
    def effective_since(self) -> date:
        return self.window_start or self.since
