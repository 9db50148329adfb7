#!filepath: first_contrib/workflows/contributions_dataset.py
from __future__ import annotations

from first_contrib.config.app_config import AppConfig
from first_contrib.config.dataset_config import DatasetConfig
from first_contrib.config.storage_config import StorageConfig
from first_contrib.dataset.facade import ContributionsDataset
from first_contrib.engines.daily_dedup_engine import DailyDedupEngine
from first_contrib.engines.labels.first_event_label_engine import CensorFilterEngine, FirstEventLabelEngine
from first_contrib.engines.partition_engine import PartitionEngine
from first_contrib.observability.instrumentation import Instrumentation, NoOpInstrumentation
from first_contrib.pipeline.pipeline import DatasetPipeline
from first_contrib.steps.daily_dedup_step import DailyDedupStep
from first_contrib.steps.event_censor_step import EventCensorStep
from first_contrib.steps.partition_step import PartitionStep
from first_contrib.steps.partition_write_step import PartitionWriteStep
from first_contrib.steps.stream_key_load_step import StreamKeyLoadStep
from first_contrib.steps.sync_step import SyncStep
from first_contrib.steps.window_filter_step import WindowFilterStep
from first_contrib.storage.accessor import StorageAccessor
from first_contrib.storage.backends import LocalMirrorBackend
from first_contrib.utils.path import PathManager


def build_storage(cfg: StorageConfig) -> StorageAccessor:
    root = PathManager.resolve(cfg.primary_root) if cfg.primary_root else PathManager.cache_dir()
    backends = [LocalMirrorBackend(m.name, PathManager.resolve(m.root)) for m in cfg.mirrors]
    return StorageAccessor(root, backends=backends, compression=cfg.compression)


def build_contributions_pipeline(
        accessor: StorageAccessor,
        cfg: DatasetConfig,
        inst: Instrumentation | NoOpInstrumentation | None = None,
) -> DatasetPipeline:
    """
    Contributions Dataset Pipeline (FINAL / FROZEN)

    Semantic Order (LAW):
        StreamKeyLoad    (key 列 + I, timestamp < until)
        → EventCensor    (first qualifying event, right-censoring)
        → WindowFilter   (timestamp >= since / window_start)
        → DailyDedup     (entity × day → 1 row, event wins)
        → Partition      (year batches, pure)
        → PartitionWrite (rollback + merge + staged commit + manifest)
        → Sync           (all mirrors, after commit only)
    """
    labeler = FirstEventLabelEngine(
        entity_col=cfg.entity_column,
        timestamp_col=cfg.timestamp_column,
        event_type_col=cfg.event_type_column,
        amount_col=cfg.amount_column,
        index_col=cfg.index_column,
        event_type=cfg.event_type,
        min_amount=cfg.min_amount,
    )

    steps = [
        StreamKeyLoadStep(accessor, cfg, inst=inst),
        EventCensorStep(labeler, CensorFilterEngine(), inst=inst),
        WindowFilterStep(timestamp_col=cfg.timestamp_column, inst=inst),
        DailyDedupStep(
            DailyDedupEngine(
                entity_col=cfg.entity_column,
                timestamp_col=cfg.timestamp_column,
                index_col=cfg.index_column,
            ),
            inst=inst,
        ),
        PartitionStep(PartitionEngine(timestamp_col=cfg.timestamp_column), inst=inst),
        PartitionWriteStep(accessor, cfg, inst=inst),
        SyncStep(accessor, overwrite=True, inst=inst),
    ]

    return DatasetPipeline(
        steps=steps,
        dataset_name=cfg.dataset_name,
        stream_name=cfg.stream_name,
        inst=inst,
    )


def build_contributions_dataset(
        cfg: AppConfig | None = None,
        accessor: StorageAccessor | None = None,
        inst: Instrumentation | NoOpInstrumentation | None = None,
) -> ContributionsDataset:
    cfg = cfg or AppConfig.load()
    accessor = accessor or build_storage(cfg.storage)
    inst = inst if inst is not None else Instrumentation()

    pipeline = build_contributions_pipeline(accessor, cfg.dataset, inst=inst)
    return ContributionsDataset(accessor, cfg.dataset, pipeline)
