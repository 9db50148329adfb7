#!filepath: first_contrib/steps/partition_step.py
from __future__ import annotations

from first_contrib.engines.partition_engine import PartitionEngine
from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.utils.logger import logs


class PartitionStep(PipelineStep):
    """ctx.keys → ctx.batches {year → rows}；不做任何 I/O"""

    def __init__(self, engine: PartitionEngine, inst=None) -> None:
        super().__init__(inst)
        self.engine = engine

    def run(self, ctx: DatasetContext) -> DatasetContext:
        with self.inst.timer("partition"):
            ctx.batches = self.engine.split(ctx.keys)

        logs.info(
            f"[{self.step_name}] "
            + ", ".join(f"{k}:{len(v)}" for k, v in ctx.batches.items())
        )
        return ctx
