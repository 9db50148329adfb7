#!filepath: first_contrib/pipeline/step.py
from __future__ import annotations

from first_contrib.pipeline.context import DatasetContext
from first_contrib.observability.instrumentation import (
    Instrumentation,
    NoOpInstrumentation,
)


class PipelineStep:
    """
    Pipeline Step 基类（最终冻结版）

    职责（唯一）：
      1. 作为 orchestration 层（调度 / 条件执行）
      2. 提供 Step 级时间语义边界（parent scope）

    设计铁律：
      - Step 本身不进入 timeline
      - 计算交给 engine，Step 只搬运 ctx
      - Step 行为不依赖 inst 是否存在
    """

    def __init__(self, inst: Instrumentation | None = None):
        # 永远保证 inst 可用（No-op 语义）
        self.inst: Instrumentation | NoOpInstrumentation = (
            inst if inst is not None else NoOpInstrumentation()
        )

    # --------------------------------------------------
    # Step identity
    # --------------------------------------------------
    @property
    def step_name(self) -> str:
        """默认使用类名作为 Step 名称。"""
        return self.__class__.__name__

    # --------------------------------------------------
    # Step-level timer（parent scope, not recorded）
    # --------------------------------------------------
    def timed(self):
        return self.inst.timer(self.step_name, record=False)

    # --------------------------------------------------
    # Contract
    # --------------------------------------------------
    def run(self, ctx: DatasetContext) -> DatasetContext:
        raise NotImplementedError
