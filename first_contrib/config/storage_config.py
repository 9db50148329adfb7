#!filepath: first_contrib/config/storage_config.py
from typing import List, Optional

from pydantic import BaseModel


class MirrorConfig(BaseModel):
    """一个同步目标（cold storage / 共享盘等挂载目录）"""
    name: str
    root: str


class StorageConfig(BaseModel):
    # None → PathManager.cache_dir()
    primary_root: Optional[str] = None
    mirrors: List[MirrorConfig] = []
    compression: str = "zstd"
