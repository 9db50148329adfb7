#!filepath: first_contrib/steps/partition_write_step.py
from __future__ import annotations

from first_contrib.config.dataset_config import DatasetConfig
from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.storage.accessor import StorageAccessor
from first_contrib.storage.partition_writer import PartitionWriter
from first_contrib.utils.logger import logs


class PartitionWriteStep(PipelineStep):
    """
    PartitionWriteStep（FINAL / FROZEN）

    输入：
      ctx.batches（partition → key 行）

    输出：
      <dataset>/partition=YYYY/part-0.parquet
      <dataset>/_manifest.json

    冻结原则：
      - 全部 partition stage 成功才 commit
      - full 模式整目录替换，incremental 模式逐 partition 合并
      - 失败 → StorageWriteError 原样上抛，后续 sync 不会执行
    """

    def __init__(self, accessor: StorageAccessor, cfg: DatasetConfig, inst=None) -> None:
        super().__init__(inst)
        self.accessor = accessor
        self.cfg = cfg

    def run(self, ctx: DatasetContext) -> DatasetContext:
        writer = PartitionWriter(
            self.accessor,
            ctx.stream,
            ctx.schema,
            entity_col=self.cfg.entity_column,
            index_col=self.cfg.index_column,
            rollback_events=self.cfg.rollback_events,
        )

        with self.inst.timer("partition_write"):
            staged = writer.write_batches(
                ctx.dataset_name,
                ctx.batches,
                replace_all=ctx.replace_all,
            )

        ctx.written_partitions = [s.partition for s in staged]
        ctx.written_rows = sum(s.rows for s in staged)

        logs.info(
            f"[{self.step_name}] {ctx.dataset_name} mode={ctx.mode} "
            f"partitions={ctx.written_partitions} rows={ctx.written_rows}"
        )
        return ctx
