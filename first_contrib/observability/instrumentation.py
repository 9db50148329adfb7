#!filepath: first_contrib/observability/instrumentation.py
from __future__ import annotations

from dataclasses import dataclass, field
from contextlib import contextmanager
from collections import OrderedDict
from typing import Dict

from time import perf_counter
from first_contrib.utils.logger import logs


@dataclass
class Instrumentation:
    """
    Instrumentation（Leaf-only accounting + Parent scope）。

    设计铁律：
    1. Timeline 只记录【叶子节点】（record=True）
    2. Step / 父级 timer 仅作为时间语义边界（record=False）
    3. Instrumentation 本身不在热路径打日志
    """

    enabled: bool = True
    timeline: Dict[str, float] = field(default_factory=OrderedDict)

    # ---------------------------------------------------------
    # Context Manager Timer（唯一入口）
    # ---------------------------------------------------------
    def timer(self, name: str, *, record: bool = True):
        inst = self

        @contextmanager
        def _ctx():
            if not inst.enabled:
                yield
                return

            start = perf_counter()
            try:
                yield
            finally:
                elapsed = perf_counter() - start
                if record:
                    inst.timeline[name] = elapsed

        return _ctx()

    # ---------------------------------------------------------
    # Timeline 输出（冷路径）
    # ---------------------------------------------------------
    def generate_timeline_report(self, title: str) -> float:
        logs.info(f"[Timeline] ===== {title} =====")

        total = 0.0
        for name, sec in self.timeline.items():
            logs.info(f"[Timeline] {str(name):<30} {sec:>8.3f}s")
            total += sec

        logs.info(f"[Timeline] Total{'':<27} {total:>8.3f}s")
        return total

    def reset(self) -> None:
        self.timeline.clear()


# -------------------------------------------------------------
# No-op Instrumentation（禁用 observability）
# -------------------------------------------------------------
class NoOpInstrumentation:
    """Instrumentation disabled 时使用。"""

    timeline: Dict[str, float] = {}

    def timer(self, name: str, *, record: bool = True):
        return _NoOpTimer()

    def generate_timeline_report(self, title: str) -> float:
        return 0.0

    def reset(self) -> None:
        pass


class _NoOpTimer:
    def __enter__(self):
        pass

    def __exit__(self, exc_type, exc, tb):
        pass
