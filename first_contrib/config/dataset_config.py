# first_contrib/config/dataset_config.py
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DatasetConfig(BaseModel):
    """
    DatasetConfig（contributions dataset 语义）

    列名约定：
      - rollback_prefixes: 以这些前缀开头的 raw 列需 rollback
      - adjusted_marker  : 列名包含该标记 → adjusted 变体，不落盘

    显式覆盖（优先级高于约定）：
      - rollback_columns : 直接指定 rollback 列
      - adjusted_columns : {raw -> adjusted} 显式映射
    """

    # storage names: "<kind>/<table>"
    dataset_name: str = "dataset/contributions_model"
    stream_name: str = "stream/stream"

    # stream key columns
    entity_column: str = "group_customer_no"
    timestamp_column: str = "timestamp"
    event_type_column: str = "event_type"
    amount_column: str = "contribution_amt"
    index_column: str = "I"

    # qualifying event
    event_type: str = "Contribution"
    min_amount: float = 50

    # column conventions
    rollback_prefixes: List[str] = Field(default_factory=lambda: ["contribution", "ticket"])
    adjusted_marker: str = "Adj"
    rollback_columns: Optional[List[str]] = None
    adjusted_columns: Optional[Dict[str, str]] = None

    # event 行的 rollback 列回退到上一条 stream 记录（防止 label 泄漏）
    rollback_events: bool = True

    lookback_days: int = 365 * 5
