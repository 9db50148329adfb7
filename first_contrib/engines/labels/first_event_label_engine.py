#!filepath: first_contrib/engines/labels/first_event_label_engine.py
from __future__ import annotations

import pandas as pd

from first_contrib.engines.labels.base import BaseLabelEngine, require_columns


class FirstEventLabelEngine(BaseLabelEngine):
    """
    FirstEventLabelEngine（FINAL / FROZEN）

    定义：
        event[t]   = event_type == "Contribution" & amount >= min_amount
        n_event[t] = 该 entity 截至 t（含）的 event 累计数
        N          = 该 entity 在窗口内的总行数
        prev_I[t]  = 该 entity 时间序上一条 stream 记录的 I（censor 之前）

    架构约束：
        - 排序键 (entity, timestamp, I)，I 作为同时刻的稳定 tie-break
        - 不删除任何行（删除由 CensorFilterEngine 负责）
        - amount 为 null → 非 event
    """

    def __init__(
            self,
            *,
            entity_col: str = "group_customer_no",
            timestamp_col: str = "timestamp",
            event_type_col: str = "event_type",
            amount_col: str = "contribution_amt",
            index_col: str = "I",
            event_type: str = "Contribution",
            min_amount: float = 50,
    ) -> None:
        self.entity_col = entity_col
        self.timestamp_col = timestamp_col
        self.event_type_col = event_type_col
        self.amount_col = amount_col
        self.index_col = index_col
        self.event_type = event_type
        self.min_amount = min_amount

    def execute(self, frame: pd.DataFrame) -> pd.DataFrame:
        require_columns(
            frame,
            [self.entity_col, self.timestamp_col, self.event_type_col, self.amount_col, self.index_col],
            who=self.__class__.__name__,
        )

        df = frame.sort_values(
            [self.entity_col, self.timestamp_col, self.index_col],
            kind="mergesort",
        ).reset_index(drop=True)

        is_type = (df[self.event_type_col].astype("object") == self.event_type)
        amount = pd.to_numeric(df[self.amount_col], errors="coerce")
        df["event"] = (is_type & (amount >= self.min_amount)).fillna(False).astype(bool)

        g = df.groupby(self.entity_col, sort=False)
        df["n_event"] = g["event"].cumsum().astype("int64")
        df["N"] = g[self.index_col].transform("size").astype("int64")
        df["prev_I"] = g[self.index_col].shift(1).fillna(-1).astype("int64")

        return df


class CensorFilterEngine:
    """
    CensorFilterEngine（right-censoring）

    保留：
        n_event == 0                                  （尚无 event）
        event & n_event == 1 & N > 1                  （首个 event，且有历史）
    其余（首个 event 之后的一切）全部删除。
    单行 entity 且该行就是 event → 0 行。
    """

    def execute(self, labeled: pd.DataFrame) -> pd.DataFrame:
        require_columns(labeled, ["event", "n_event", "N"], who=self.__class__.__name__)

        keep = (labeled["n_event"] == 0) | (
            labeled["event"] & (labeled["n_event"] == 1) & (labeled["N"] > 1)
        )
        return labeled.loc[keep].drop(columns=["n_event", "N"]).reset_index(drop=True)
