# first_contrib/utils/errors.py


class UserInputError(RuntimeError):
    """
    Raised for invalid user-provided arguments (dates, flags, etc).
    Should NOT print traceback.
    """


class CacheNotFoundError(FileNotFoundError):
    """
    Read-only access requested but no materialized dataset exists.
    """

    def __init__(self, name: str):
        super().__init__(f"no cached dataset found: {name}")
        self.name = name


class StorageWriteError(RuntimeError):
    """
    A partition write failed.

    语义：
      - 整个 batch 作废
      - 不做 sync
      - 已有 cache 保持最后一次成功状态
    """

    def __init__(self, name: str, partition: int | None, reason: str):
        where = f"partition={partition}" if partition is not None else "commit"
        super().__init__(f"[{name}] write failed at {where}: {reason}")
        self.name = name
        self.partition = partition


class SyncError(RuntimeError):
    """
    Propagation to a mirror backend failed after a successful local commit.
    The local cache is correct; the mirror may lag until sync is retried.
    """

    def __init__(self, name: str, backend: str, reason: str):
        super().__init__(f"[{name}] sync to {backend} failed: {reason}")
        self.name = name
        self.backend = backend


class DatasetLockedError(RuntimeError):
    """Another writer currently holds the dataset write lock."""
