from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from first_contrib.utils.filesystem import FileSystem
from first_contrib.utils.logger import logs


@dataclass(frozen=True)
class PartitionMeta:
    """单个 partition 的事实记录（file 相对 dataset 目录）"""

    rows: int
    min_date: Optional[str]
    max_date: Optional[str]
    file: str
    size: int = 0


@dataclass
class ManifestPayload:
    """
    DatasetManifest 内容（冻结版）

    表达：
      - dataset 当前由哪些 partition 组成
      - 每个 partition 的规模与日期范围
      - 当前列集合（用于对账 schema 演化）
    """

    dataset: str
    mode: str
    columns: List[str]
    partitions: Dict[int, PartitionMeta] = field(default_factory=dict)
    created_at: str = ""

    @property
    def max_date(self) -> Optional[date]:
        dates = [p.max_date for p in self.partitions.values() if p.max_date]
        return date.fromisoformat(max(dates)) if dates else None

    @property
    def rows(self) -> int:
        return sum(p.rows for p in self.partitions.values())


class DatasetManifest:
    """
    DatasetManifest（v1）

    统一职责：
      - 记录 dataset 目录的 partition 组成
      - 提供 cache freshness 所需的 max_date（无需扫描数据）

    设计铁律：
      - 只在全部 partition commit 成功之后写入
      - 文件名以 "_" 开头，dataset discovery 自动忽略
    """

    META_VERSION = 1
    FILE_NAME = "_manifest.json"

    def __init__(self, dataset_dir: Path, dataset: str):
        self.dataset_dir = Path(dataset_dir)
        self.dataset = dataset

    # --------------------------------------------------
    @property
    def path(self) -> Path:
        return self.dataset_dir / self.FILE_NAME

    def exists(self) -> bool:
        return self.path.exists()

    # --------------------------------------------------
    def load(self) -> ManifestPayload | None:
        if not self.path.exists():
            return None

        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw: Dict[str, Any] = json.load(f)
        except json.JSONDecodeError as e:
            logs.warning(f"[manifest] unreadable {self.path}: {e}")
            return None

        return ManifestPayload(
            dataset=raw["dataset"],
            mode=raw.get("mode", ""),
            columns=list(raw.get("columns", [])),
            partitions={
                int(k): PartitionMeta(**v)
                for k, v in raw.get("partitions", {}).items()
            },
            created_at=raw.get("created_at", ""),
        )

    # --------------------------------------------------
    def commit(self, payload: ManifestPayload) -> None:
        data = {
            "version": self.META_VERSION,
            "dataset": payload.dataset,
            "mode": payload.mode,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "columns": payload.columns,
            "partitions": {
                str(k): {
                    "rows": p.rows,
                    "min_date": p.min_date,
                    "max_date": p.max_date,
                    "file": p.file,
                    "size": FileSystem.get_file_size(self.dataset_dir / p.file),
                }
                for k, p in sorted(payload.partitions.items())
            },
        }

        FileSystem.safe_write(
            self.path,
            json.dumps(data, indent=2, sort_keys=True).encode("utf-8"),
        )
        logs.debug(f"[manifest] committed {self.path} partitions={sorted(payload.partitions)}")
