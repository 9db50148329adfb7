#!filepath: first_contrib/engines/stream_schema.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

import pyarrow as pa

from first_contrib.config.dataset_config import DatasetConfig
from first_contrib.engines.labels.base import require_columns
from first_contrib.utils.logger import logs


@dataclass(frozen=True)
class StreamSchema:
    """
    StreamSchema（每次 pipeline 构造时解析一次）

    - adjusted_map     : raw 列 → 对应的 adjusted 列（没有则 None）
    - adjusted_columns : 所有 adjusted 列（永不落盘）
    - rollback_columns : 需要按行自身时点回退的 raw 列
    - write_columns    : 落盘的 stream 列（stream 列 - adjusted 列）

    下游不再按列名做字符串匹配。
    """

    key_columns: Tuple[str, ...]
    write_columns: Tuple[str, ...]
    adjusted_map: Dict[str, Optional[str]]
    adjusted_columns: FrozenSet[str]
    rollback_columns: FrozenSet[str]

    @classmethod
    def resolve(cls, schema: pa.Schema, cfg: DatasetConfig) -> "StreamSchema":
        key_columns = (
            cfg.entity_column,
            cfg.timestamp_column,
            cfg.event_type_column,
            cfg.amount_column,
        )
        require_columns(schema.empty_table(), key_columns, who=cls.__name__)

        # I 由 pipeline 生成；partition 由目录推导
        names = [n for n in schema.names if n not in (cfg.index_column, "partition")]

        # ------------------------------
        # adjusted
        # ------------------------------
        if cfg.adjusted_columns is not None:
            adjusted = frozenset(a for a in cfg.adjusted_columns.values() if a in names)
            raw_of = {a: r for r, a in cfg.adjusted_columns.items()}
        else:
            adjusted = frozenset(n for n in names if cfg.adjusted_marker in n)
            raw_of = {a: a.replace(cfg.adjusted_marker, "", 1) for a in adjusted}

        raw_columns = [n for n in names if n not in adjusted]
        adjusted_map: Dict[str, Optional[str]] = {r: None for r in raw_columns}
        for a in sorted(adjusted):
            if raw_of.get(a) in adjusted_map:
                adjusted_map[raw_of[a]] = a

        # ------------------------------
        # rollback
        # ------------------------------
        if cfg.rollback_columns is not None:
            unknown = sorted(set(cfg.rollback_columns) - set(raw_columns))
            if unknown:
                logs.warning(f"[StreamSchema] rollback columns not in stream: {unknown}")
            rollback = frozenset(c for c in cfg.rollback_columns if c in raw_columns)
        else:
            prefixes = tuple(cfg.rollback_prefixes)
            rollback = frozenset(c for c in raw_columns if c.startswith(prefixes))

        # key 列永不 rollback（entity / timestamp 是行身份）
        rollback = rollback - {cfg.entity_column, cfg.timestamp_column}

        resolved = cls(
            key_columns=key_columns,
            write_columns=tuple(raw_columns),
            adjusted_map=adjusted_map,
            adjusted_columns=adjusted,
            rollback_columns=rollback,
        )

        logs.info(
            f"[StreamSchema] columns={len(names)} write={len(raw_columns)} "
            f"adjusted={len(adjusted)} rollback={sorted(rollback)}"
        )
        return resolved
