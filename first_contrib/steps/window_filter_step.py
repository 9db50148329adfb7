#!filepath: first_contrib/steps/window_filter_step.py
from __future__ import annotations

import pandas as pd

from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.pipeline import PipelineAbort
from first_contrib.pipeline.step import PipelineStep
from first_contrib.utils.datetime_utils import DateTimeUtils
from first_contrib.utils.logger import logs


class WindowFilterStep(PipelineStep):
    """
    保留 effective_since <= timestamp < until

    effective_since：
      - full        → since
      - incremental → window_start（边界日整天重算）

    窗口为空 → PipelineAbort（不写、不 sync）
    """

    def __init__(self, timestamp_col: str = "timestamp", inst=None) -> None:
        super().__init__(inst)
        self.timestamp_col = timestamp_col

    def run(self, ctx: DatasetContext) -> DatasetContext:
        ts = pd.to_datetime(ctx.keys[self.timestamp_col])
        lo = DateTimeUtils.bound_for(ctx.effective_since, ts)
        hi = DateTimeUtils.bound_for(ctx.until, ts)

        ctx.keys = ctx.keys.loc[(ts >= lo) & (ts < hi)].reset_index(drop=True)

        logs.info(f"[{self.step_name}] [{lo}, {hi}) rows={len(ctx.keys)}")

        if ctx.keys.empty:
            raise PipelineAbort(f"no rows in [{ctx.effective_since}, {ctx.until})")

        return ctx
