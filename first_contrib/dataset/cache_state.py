#!filepath: first_contrib/dataset/cache_state.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class CacheState(str, Enum):
    """
    Dataset cache 状态机

    rebuild_dataset:
      False → FORCE_READ     （只读，可能过期；无 cache → CacheNotFoundError）
      True  → FORCE_REBUILD  （全量重建）
      None  → NO_CACHE / CACHE_FRESH / CACHE_STALE
    """

    NO_CACHE = "no_cache"
    CACHE_FRESH = "cache_fresh"
    CACHE_STALE = "cache_stale"
    FORCE_REBUILD = "force_rebuild"
    FORCE_READ = "force_read"

    @property
    def rebuilds(self) -> bool:
        return self in (CacheState.NO_CACHE, CacheState.FORCE_REBUILD, CacheState.CACHE_STALE)

    @property
    def mode(self) -> Optional[str]:
        if self in (CacheState.NO_CACHE, CacheState.FORCE_REBUILD):
            return "full"
        if self is CacheState.CACHE_STALE:
            return "incremental"
        return None


@dataclass(frozen=True)
class CacheStatus:
    exists: bool
    max_date: Optional[date] = None
    rows: Optional[int] = None


def resolve_cache_state(
        exists: bool,
        max_date: Optional[date],
        until: date,
        rebuild_dataset: Optional[bool],
) -> CacheState:
    """纯函数：不做任何 I/O"""
    if rebuild_dataset is False:
        return CacheState.FORCE_READ
    if rebuild_dataset is True:
        return CacheState.FORCE_REBUILD
    if not exists:
        return CacheState.NO_CACHE
    if max_date is not None and max_date >= until:
        return CacheState.CACHE_FRESH
    return CacheState.CACHE_STALE


def incremental_window_start(max_date: Optional[date], since: date) -> date:
    """
    增量窗口起点 = max(cache max_date, since)，含边界日。

    边界日整天重算：同一 (entity, date) 的旧行被新行替换。
    """
    if max_date is None:
        return since
    return max(max_date, since)
