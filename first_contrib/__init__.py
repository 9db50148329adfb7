#!filepath: first_contrib/__init__.py

from .utils.logger import Logging, logs
from .utils.retry import Retry
from .utils.filesystem import FileSystem
from .utils.path import PathManager
from .utils.datetime_utils import DateTimeUtils

datetime_utils = DateTimeUtils

# alias 简化调用
retry = Retry
fs = FileSystem
path = PathManager

__all__ = [
    "logs", "Logging",
    "retry",
    "fs",
    "path",
    "datetime_utils",
]
