"""Sync targets for the partitioned cache."""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from first_contrib.utils.filesystem import FileSystem
from first_contrib.utils.logger import logs


class StorageBackend(ABC):
    """
    同步目标抽象

    primary cache 永远是本地目录；backend 只负责接收 / 提供整份 dataset 目录。
    """

    name: str

    @abstractmethod
    def push(self, local_dir: Path, dataset_name: str, overwrite: bool) -> int:
        """
        Propagate ``local_dir`` to this backend under ``dataset_name``.

        Returns:
            number of files transferred
        """
        ...

    @abstractmethod
    def exists(self, dataset_name: str) -> bool:
        ...


class LocalMirrorBackend(StorageBackend):
    """
    挂载目录镜像（NAS / cold storage / 共享盘）

    overwrite=True 时整目录替换（tmp → rename），镜像与本地完全一致；
    overwrite=False 时只补齐缺失/变化的文件。
    """

    def __init__(self, name: str, root: str | Path):
        self.name = name
        self.root = Path(root)

    def dataset_dir(self, dataset_name: str) -> Path:
        return self.root / dataset_name

    def push(self, local_dir: Path, dataset_name: str, overwrite: bool) -> int:
        target = self.dataset_dir(dataset_name)
        n = FileSystem.copy_tree(local_dir, target, overwrite=overwrite)
        logs.info(f"[LocalMirrorBackend:{self.name}] {dataset_name} → {target} files={n}")
        return n

    def exists(self, dataset_name: str) -> bool:
        return bool(FileSystem.scan_dir(self.dataset_dir(dataset_name), suffix=".parquet"))

    def __repr__(self) -> str:
        return f"LocalMirrorBackend(name={self.name!r}, root={str(self.root)!r})"
