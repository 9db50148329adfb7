#!filepath: first_contrib/utils/filesystem.py
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from first_contrib.utils.logger import logs
from first_contrib.utils.errors import DatasetLockedError


class FileSystem:
    """
    统一文件系统工具
    - 自动创建目录
    - 安全写入文件（临时文件 → rename）
    - 删除文件/目录
    - 扫描 / 复制目录树
    - 独占写锁
    """

    @staticmethod
    def ensure_dir(path: str | Path) -> Path:
        """
        创建目录（如果不存在）
        """
        p = Path(path)
        if not p.exists():
            p.mkdir(parents=True, exist_ok=True)
            logs.debug(f"[FS] 创建目录: {p}")
        return p

    @staticmethod
    def get_file_size(path: str | Path) -> int:
        p = Path(path)
        if not p.exists():
            return 0
        return p.stat().st_size

    @staticmethod
    def safe_write(path: str | Path, data: bytes) -> None:
        """
        原子写入（避免部分写入导致文件损坏）
            1) 先写入 tmp 文件
            2) rename → 正式文件
        """
        path = Path(path)
        FileSystem.ensure_dir(path.parent)

        tmp_path = path.with_suffix(path.suffix + ".tmp")

        with open(tmp_path, "wb") as f:
            f.write(data)
            logs.debug(f"[FS] 写入临时文件: {tmp_path}")

        tmp_path.replace(path)
        logs.debug(f"[FS] 原子写入完成: {path}")

    @staticmethod
    def remove(path: str | Path) -> None:
        """
        安全删除文件/目录
        """
        p = Path(path)

        if not p.exists():
            logs.debug(f"[FS] 路径不存在，无需删除: {p}")
            return

        if p.is_dir():
            shutil.rmtree(p)
            logs.debug(f"[FS] 删除目录: {p}")
        else:
            p.unlink()
            logs.debug(f"[FS] 删除文件: {p}")

    @staticmethod
    def scan_dir(path: str | Path, suffix: Optional[str] = None) -> List[Path]:
        """
        递归返回目录下所有文件（可按后缀过滤），按路径排序
        """
        p = Path(path)
        if not p.exists():
            return []

        return sorted(
            f for f in p.rglob("*")
            if f.is_file() and (suffix is None or f.suffix == suffix)
        )

    @staticmethod
    def copy_tree(src: str | Path, dst: str | Path, overwrite: bool = True) -> int:
        """
        复制目录树 src → dst

        overwrite=True :
            dst 先整体写到 dst.tmp，再替换 → 远端状态 == 本地状态
        overwrite=False:
            只补齐 dst 中缺失或大小不同的文件，不删除远端多余文件

        返回复制的文件数
        """
        src, dst = Path(src), Path(dst)

        if overwrite:
            tmp = dst.with_name(dst.name + ".tmp")
            FileSystem.remove(tmp)
            FileSystem.ensure_dir(tmp.parent)
            shutil.copytree(src, tmp, ignore=shutil.ignore_patterns("*.tmp", "*.lock"))

            old = dst.with_name(dst.name + ".old")
            FileSystem.remove(old)
            if dst.exists():
                dst.rename(old)
            tmp.rename(dst)
            FileSystem.remove(old)
            return len(FileSystem.scan_dir(dst))

        copied = 0
        for f in FileSystem.scan_dir(src):
            if f.suffix in (".tmp", ".lock"):
                continue
            target = dst / f.relative_to(src)
            if target.exists() and target.stat().st_size == f.stat().st_size:
                continue
            FileSystem.ensure_dir(target.parent)
            shutil.copy2(f, target)
            copied += 1
        return copied

    @staticmethod
    def clean_temp_files(path: str | Path, suffix=".tmp") -> int:
        """
        删除目录下所有 *.tmp 临时文件
        返回删除的数量
        """
        p = Path(path)
        count = 0

        if not p.exists():
            return 0

        for f in p.rglob(f"*{suffix}"):
            if f.is_file():
                f.unlink()
                count += 1
                logs.debug(f"[FS] 删除临时文件: {f}")

        return count

    @staticmethod
    @contextmanager
    def exclusive_lock(lock_file: str | Path) -> Iterator[Path]:
        """
        单写者锁（O_CREAT | O_EXCL）

        - 同一 dataset 同时只允许一个 writer
        - 读不加锁
        """
        lock_file = Path(lock_file)
        FileSystem.ensure_dir(lock_file.parent)

        try:
            fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise DatasetLockedError(f"dataset is locked by another writer: {lock_file}") from e

        try:
            os.write(fd, str(os.getpid()).encode("utf-8"))
            os.close(fd)
            yield lock_file
        finally:
            lock_file.unlink(missing_ok=True)
