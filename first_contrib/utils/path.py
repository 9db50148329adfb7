#!filepath: first_contrib/utils/path.py
import os
from pathlib import Path
from typing import Optional

from first_contrib.utils.logger import logs


class PathManager:
    """
    目录结构：

    <root>                       项目根目录（first_contrib 的上一级）
     ├── first_contrib/config/   项目内部配置
     └── cache/                  默认 primary cache
           ├── stream/stream/partition=YYYY/*.parquet
           └── dataset/<name>/partition=YYYY/*.parquet

    FIRST_CONTRIB_CACHE_DIR 可覆盖 cache 根目录
    """

    _root: Optional[Path] = None

    # ---------------------------------------------------------
    # root detection
    # ---------------------------------------------------------
    @classmethod
    def detect_root(cls) -> Path:
        """
        当前文件位于：
            <root>/first_contrib/utils/path.py
        因此 root = parents[2]
        """
        current = Path(__file__).resolve()

        try:
            root = current.parents[2]
            logs.debug(f"[PathManager] detect_root = {root}")
            return root
        except IndexError:
            logs.warning("[PathManager] detect_root 失败，使用 cwd()")
            return Path.cwd()

    @classmethod
    def root(cls) -> Path:
        if cls._root is None:
            cls._root = cls.detect_root()
        return cls._root

    @classmethod
    def set_root(cls, new_root: Path | str | None):
        if new_root is None:
            cls._root = None
        else:
            cls._root = Path(new_root).resolve()
        logs.debug(f"[PathManager] set_root = {cls._root}")

    # ---------------------------------------------------------
    # cache
    # ---------------------------------------------------------
    @classmethod
    def cache_dir(cls) -> Path:
        env = os.getenv("FIRST_CONTRIB_CACHE_DIR")
        if env:
            return Path(env)
        return cls.root() / "cache"

    @classmethod
    def resolve(cls, path: str | Path) -> Path:
        """相对路径一律相对于 root 解析"""
        p = Path(path)
        return p if p.is_absolute() else cls.root() / p

    # ---------------------------------------------------------
    # config
    # ---------------------------------------------------------
    @classmethod
    def project_config_dir(cls) -> Path:
        return cls.root() / "first_contrib" / "config"

    @classmethod
    def config_file(cls, name: str = "base.yml") -> Path:
        return cls.project_config_dir() / name

    @classmethod
    def env_file(cls) -> Path:
        return cls.root() / ".env"
