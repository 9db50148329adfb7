#!filepath: first_contrib/steps/sync_step.py
from __future__ import annotations

from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.storage.accessor import StorageAccessor


class SyncStep(PipelineStep):
    """commit 之后把 dataset 推到所有 mirror；失败 → SyncError 上抛"""

    def __init__(self, accessor: StorageAccessor, overwrite: bool = True, inst=None) -> None:
        super().__init__(inst)
        self.accessor = accessor
        self.overwrite = overwrite

    def run(self, ctx: DatasetContext) -> DatasetContext:
        with self.inst.timer("sync"):
            self.accessor.sync(ctx.dataset_name, overwrite=self.overwrite)
        ctx.synced = True
        return ctx
