#!filepath: first_contrib/config/app_config.py
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .log_config import LogConfig
from .storage_config import StorageConfig
from .dataset_config import DatasetConfig
from .read_config import ReadConfig
from first_contrib.utils.path import PathManager


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    read: ReadConfig = Field(default_factory=ReadConfig)

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - 默认使用 <project_root>/first_contrib/config/base.yml
        - 不依赖当前工作目录
        """
        # 1) 先加载 .env（在项目根目录下）
        load_dotenv(PathManager.env_file())

        # 2) 决定配置文件路径
        if path is None:
            path = str(PathManager.config_file("base.yml"))

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        # 3) 读取 YAML
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        # 4) env 覆盖 primary cache 根目录
        cache_dir = os.getenv("FIRST_CONTRIB_CACHE_DIR")
        if cache_dir:
            raw.setdefault("storage", {})["primary_root"] = cache_dir

        return cls(**raw)
