#!filepath: first_contrib/steps/daily_dedup_step.py
from __future__ import annotations

from first_contrib.engines.daily_dedup_engine import DailyDedupEngine
from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.utils.logger import logs


class DailyDedupStep(PipelineStep):

    def __init__(self, engine: DailyDedupEngine, inst=None) -> None:
        super().__init__(inst)
        self.engine = engine

    def run(self, ctx: DatasetContext) -> DatasetContext:
        before = len(ctx.keys)
        with self.inst.timer("daily_dedup"):
            ctx.keys = self.engine.execute(ctx.keys)

        logs.info(f"[{self.step_name}] rows {before} → {len(ctx.keys)}")
        return ctx
