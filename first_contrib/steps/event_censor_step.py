#!filepath: first_contrib/steps/event_censor_step.py
from __future__ import annotations

from first_contrib.engines.labels.first_event_label_engine import CensorFilterEngine, FirstEventLabelEngine
from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.utils.logger import logs


class EventCensorStep(PipelineStep):
    """label → censor（engine 纯计算，Step 只搬运 ctx.keys）"""

    def __init__(
            self,
            labeler: FirstEventLabelEngine,
            censor: CensorFilterEngine | None = None,
            inst=None,
    ) -> None:
        super().__init__(inst)
        self.labeler = labeler
        self.censor = censor or CensorFilterEngine()

    def run(self, ctx: DatasetContext) -> DatasetContext:
        before = len(ctx.keys)

        with self.inst.timer("label"):
            labeled = self.labeler.execute(ctx.keys)

        with self.inst.timer("censor"):
            ctx.keys = self.censor.execute(labeled)

        logs.info(
            f"[{self.step_name}] rows {before} → {len(ctx.keys)} "
            f"events={int(ctx.keys['event'].sum())}"
        )
        return ctx
