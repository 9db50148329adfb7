#!filepath: first_contrib/steps/stream_key_load_step.py
from __future__ import annotations

from first_contrib.config.dataset_config import DatasetConfig
from first_contrib.engines.stream_schema import StreamSchema
from first_contrib.pipeline.context import DatasetContext
from first_contrib.pipeline.step import PipelineStep
from first_contrib.storage.accessor import StorageAccessor
from first_contrib.storage.stream_rows import StreamRowIndex
from first_contrib.utils.datetime_utils import DateTimeUtils
from first_contrib.utils.logger import logs


class StreamKeyLoadStep(PipelineStep):
    """
    StreamKeyLoadStep

    输入：
      stream/stream（hive, 全量）

    输出：
      ctx.schema : StreamSchema（本次 run 解析一次）
      ctx.stream : StreamRowIndex（供写入阶段按 I 回取整行）
      ctx.keys   : entity / timestamp / event_type / amount / I，timestamp < until

    censor 依赖完整历史，所以这里不按 since 过滤。
    """

    def __init__(self, accessor: StorageAccessor, cfg: DatasetConfig, inst=None) -> None:
        super().__init__(inst)
        self.accessor = accessor
        self.cfg = cfg

    def run(self, ctx: DatasetContext) -> DatasetContext:
        with self.inst.timer("stream_open"):
            stream = StreamRowIndex.open(self.accessor, ctx.stream_name, index_column=self.cfg.index_column)
            ctx.schema = StreamSchema.resolve(stream.schema, self.cfg)
            ctx.stream = stream

        with self.inst.timer("stream_scan_keys"):
            table = stream.scan_keys(
                ctx.schema.key_columns,
                timestamp_column=self.cfg.timestamp_column,
                until=DateTimeUtils.start_of_day(ctx.until),
            )
            ctx.keys = table.to_pandas()

        logs.info(
            f"[{self.step_name}] {ctx.stream_name} rows={stream.total} "
            f"keys<{ctx.until}={len(ctx.keys)}"
        )
        return ctx
