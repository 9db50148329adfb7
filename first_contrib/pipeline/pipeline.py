#!filepath: first_contrib/pipeline/pipeline.py
from __future__ import annotations

from datetime import date
from typing import Optional

from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.observability.instrumentation import Instrumentation, NoOpInstrumentation
from first_contrib.utils.logger import logs


class PipelineAbort(Exception):
    """
    Step 主动终止本次 run（例如窗口内没有任何行）。

    不是错误：不写入、不 sync，已有 cache 保持不变。
    """


class DatasetPipeline:
    """
    DatasetPipeline = 调度器（Scheduler）

    设计铁律：
    - Pipeline 负责 orchestration（顺序 / 上下文）
    - Pipeline 不负责任何 Step 级计时
    - Step 自己定义时间语义边界（via PipelineStep.timed）
    - StorageWriteError / SyncError 原样向上抛
    """

    def __init__(
            self,
            steps: list[PipelineStep],
            dataset_name: str,
            stream_name: str,
            inst: Instrumentation | NoOpInstrumentation | None = None,
    ):
        self.steps = steps
        self.dataset_name = dataset_name
        self.stream_name = stream_name
        self.inst = inst if inst is not None else NoOpInstrumentation()

    def run(
            self,
            since: date,
            until: date,
            mode: str = "full",
            window_start: Optional[date] = None,
    ) -> DatasetContext:
        logs.info(
            f"[Pipeline] ====== START {self.dataset_name} "
            f"mode={mode} [{window_start or since}, {until}) ======"
        )

        ctx = DatasetContext(
            dataset_name=self.dataset_name,
            stream_name=self.stream_name,
            since=since,
            until=until,
            mode=mode,
            window_start=window_start,
        )

        # --------------------------------------------------
        # 核心循环：Pipeline 不打 timer
        # --------------------------------------------------
        try:
            for step in self.steps:
                with step.timed():
                    ctx = step.run(ctx)
        except PipelineAbort as e:
            logs.warning(f"[Pipeline][SKIP] {e}")
            ctx.abort_pipeline = True
            ctx.abort_reason = str(e)
            return ctx

        # Timeline 只包含 leaf（由 Step 写入）
        self.inst.generate_timeline_report(f"{self.dataset_name} {mode}")

        return ctx
