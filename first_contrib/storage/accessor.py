#!filepath: first_contrib/storage/accessor.py
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.dataset as ds
import pyarrow.parquet as pq

from first_contrib.meta.manifest import DatasetManifest, ManifestPayload, PartitionMeta
from first_contrib.storage.backends import StorageBackend
from first_contrib.utils.errors import StorageWriteError, SyncError
from first_contrib.utils.filesystem import FileSystem
from first_contrib.utils.logger import logs
from first_contrib.utils.parquet_utils import ParquetAtomicWriter


@dataclass(frozen=True)
class StagedPartition:
    """一个已写入 tmp、尚未 commit 的 partition"""

    partition: int
    tmp_file: Path
    target_file: Path
    rows: int


class StorageAccessor:
    """
    StorageAccessor（primary cache + mirrors）

    目录布局（hive）：
        <root>/<kind>/<table>/partition=YYYY/part-0.parquet
        <root>/<kind>/<table>/_manifest.json

    约束：
      - 读：lazy pyarrow.dataset，支持 filter / projection
      - 写：两阶段（stage → commit），commit 前读者看不到任何新文件
      - sync：只在 commit 之后调用
    """

    PARTITION_KEY = "partition"
    PARTITION_TYPE = pa.int32()
    FILE_NAME = "part-0.parquet"

    def __init__(
            self,
            root: str | Path,
            backends: Sequence[StorageBackend] = (),
            compression: str = "zstd",
    ) -> None:
        self.root = Path(root)
        self.backends = list(backends)
        self.compression = compression

    # ==================================================
    # paths
    # ==================================================
    def path(self, name: str) -> Path:
        return self.root / name

    def staging_path(self, name: str) -> Path:
        p = self.path(name)
        return p.with_name(p.name + ".staging")

    def partition_file(self, name: str, partition: int, base: Path | None = None) -> Path:
        base = base if base is not None else self.path(name)
        return base / f"{self.PARTITION_KEY}={int(partition)}" / self.FILE_NAME

    def manifest(self, name: str) -> DatasetManifest:
        return DatasetManifest(self.path(name), dataset=name)

    # ==================================================
    # read
    # ==================================================
    def exists(self, name: str) -> bool:
        return bool(self._data_files(self.path(name)))

    def read_partitioned(
            self,
            name: str,
            columns: Optional[Sequence[str]] = None,
            include_partition_key: bool = False,
    ) -> ds.Dataset:
        """
        Lazy handle over a partitioned dataset.

        Schema is unified across partitions, so columns that only exist in
        newer partitions read back as null for older ones.
        """
        return self._open(name, include_partition_key=include_partition_key, columns=columns)

    def read_partition(self, name: str, partition: int) -> pa.Table | None:
        file = self.partition_file(name, partition)
        if not file.exists():
            return None
        return pq.read_table(file)

    def _open(
            self,
            name: str,
            include_partition_key: bool,
            columns: Optional[Sequence[str]] = None,
    ) -> ds.Dataset:
        base = self.path(name)
        files = self._data_files(base)
        if not files:
            raise FileNotFoundError(f"[StorageAccessor] no parquet data under {base}")

        # 各 partition 的物理 schema 可能不同（新列），统一后再建 dataset
        schema = pa.unify_schemas(
            [pq.read_schema(f) for f in files],
            promote_options="permissive",
        )
        if self.PARTITION_KEY in schema.names:
            schema = schema.remove(schema.get_field_index(self.PARTITION_KEY))

        if columns is not None:
            missing = [c for c in columns if c not in schema.names and c != self.PARTITION_KEY]
            if missing:
                raise KeyError(f"[StorageAccessor] {name} missing columns: {missing}")
            schema = pa.schema([schema.field(c) for c in columns if c != self.PARTITION_KEY])

        partitioning = None
        if include_partition_key:
            schema = schema.append(pa.field(self.PARTITION_KEY, self.PARTITION_TYPE))
            partitioning = ds.partitioning(
                pa.schema([(self.PARTITION_KEY, self.PARTITION_TYPE)]),
                flavor="hive",
            )

        return ds.dataset(
            [str(f) for f in files],
            schema=schema,
            format="parquet",
            partitioning=partitioning,
            partition_base_dir=str(base),
        )

    @staticmethod
    def _data_files(base: Path) -> List[Path]:
        return [
            f for f in FileSystem.scan_dir(base, suffix=".parquet")
            if not f.name.startswith((".", "_"))
        ]

    # ==================================================
    # write（两阶段）
    # ==================================================
    def begin(self, name: str, replace_all: bool = False) -> None:
        """清理上一次失败写入的残留（tmp / staging / 未还原的 .bak）"""
        base = self.path(name)
        if base.exists():
            for backup in base.rglob(".*.bak"):
                target = backup.with_name(backup.name[1:-len(".bak")])
                if target.exists():
                    backup.unlink()
                else:
                    backup.replace(target)
                    logs.warning(f"[StorageAccessor] restored {target} from backup")
        FileSystem.clean_temp_files(base)
        if replace_all:
            FileSystem.remove(self.staging_path(name))

    def stage_partition(
            self,
            name: str,
            partition: int,
            table: pa.Table,
            replace_all: bool = False,
    ) -> StagedPartition:
        """
        写 partition 到 tmp 位置：
          - replace_all=False：<dataset>/partition=YYYY/.part-0.parquet.tmp
          - replace_all=True ：<dataset>.staging/partition=YYYY/part-0.parquet
        """
        if self.PARTITION_KEY in table.column_names:
            table = table.drop_columns([self.PARTITION_KEY])

        try:
            if replace_all:
                target = self.partition_file(name, partition, base=self.staging_path(name))
                FileSystem.ensure_dir(target.parent)
                pq.write_table(table, target, compression=self.compression)
                tmp = target
            else:
                target = self.partition_file(name, partition)
                tmp = ParquetAtomicWriter.stage_table(
                    table, target, compression=self.compression
                )
        except (OSError, pa.ArrowException) as e:
            raise StorageWriteError(name, partition, str(e)) from e

        logs.debug(f"[StorageAccessor] staged {name} partition={partition} rows={table.num_rows}")
        return StagedPartition(
            partition=int(partition),
            tmp_file=tmp,
            target_file=target,
            rows=table.num_rows,
        )

    def commit(self, name: str, staged: Sequence[StagedPartition], replace_all: bool = False) -> None:
        """
        全部 stage 成功后调用。

        replace_all=True：整目录替换（旧 dataset 被完整替代）
        replace_all=False：逐 partition rename 覆盖，任一失败则全部还原
        """
        try:
            if replace_all:
                live = self.path(name)
                staging = self.staging_path(name)
                FileSystem.ensure_dir(staging)
                old = live.with_name(live.name + ".old")
                FileSystem.remove(old)
                if live.exists():
                    live.rename(old)
                staging.rename(live)
                FileSystem.remove(old)
            else:
                self._commit_partitions(staged)
        except OSError as e:
            raise StorageWriteError(name, None, str(e)) from e

        logs.info(
            f"[StorageAccessor] committed {name} "
            f"partitions={[s.partition for s in staged]} replace_all={replace_all}"
        )

    @staticmethod
    def _commit_partitions(staged: Sequence[StagedPartition]) -> None:
        """
        逐 partition 替换，旧文件先移到 .<file>.bak。

        任一 rename 失败 → 已替换的 partition 全部还原，再上抛 OSError
        """
        done: List[tuple[StagedPartition, Optional[Path]]] = []
        try:
            for s in staged:
                backup = None
                if s.target_file.exists():
                    backup = s.target_file.with_name(f".{s.target_file.name}.bak")
                    s.target_file.replace(backup)
                done.append((s, backup))
                ParquetAtomicWriter.commit(s.tmp_file, s.target_file)
        except OSError:
            for s, backup in reversed(done):
                if backup is not None:
                    backup.replace(s.target_file)
                else:
                    s.target_file.unlink(missing_ok=True)
            logs.warning(f"[StorageAccessor] commit failed, restored {len(done)} partition(s)")
            raise

        for _, backup in done:
            if backup is not None:
                backup.unlink()

    def abort(self, name: str, staged: Sequence[StagedPartition] = ()) -> None:
        """丢弃所有未 commit 的 tmp 文件，已有 cache 不受影响"""
        for s in staged:
            if s.tmp_file != s.target_file:
                s.tmp_file.unlink(missing_ok=True)
        FileSystem.remove(self.staging_path(name))
        FileSystem.clean_temp_files(self.path(name))
        logs.warning(f"[StorageAccessor] aborted write of {name}, staged={len(staged)}")

    @contextmanager
    def write_lock(self, name: str) -> Iterator[Path]:
        """单 dataset 单写者"""
        lock = self.path(name).with_name(self.path(name).name + ".lock")
        with FileSystem.exclusive_lock(lock) as p:
            yield p

    def refresh_manifest(self, name: str, mode: str, date_column: str = "date") -> ManifestPayload:
        """
        commit 之后按磁盘事实重建 manifest（每个 partition 只读 date 列）
        """
        base = self.path(name)
        partitions = {}
        columns: list[str] = []

        for f in self._data_files(base):
            if "=" not in f.parent.name:
                continue
            key = int(f.parent.name.split("=", 1)[1])
            dates = pq.read_table(f, columns=[date_column])[date_column]
            lo, hi = pc.min(dates).as_py(), pc.max(dates).as_py()
            partitions[key] = PartitionMeta(
                rows=len(dates),
                min_date=lo.isoformat() if lo is not None else None,
                max_date=hi.isoformat() if hi is not None else None,
                file=str(f.relative_to(base)),
            )
            for c in pq.read_schema(f).names:
                if c not in columns:
                    columns.append(c)

        payload = ManifestPayload(dataset=name, mode=mode, columns=columns, partitions=partitions)
        self.manifest(name).commit(payload)
        return payload

    def delete(self, name: str) -> None:
        """显式 cache 失效"""
        FileSystem.remove(self.path(name))
        logs.warning(f"[StorageAccessor] deleted {name}")

    # ==================================================
    # sync
    # ==================================================
    @logs.catch(msg="sync failed", log_time=True)
    def sync(self, name: str, overwrite: bool = True) -> dict[str, int]:
        """
        把 primary 上的 dataset 推到所有 backend。

        所有 backend 都会尝试；任何一个失败 → SyncError（本地 cache 仍然正确）
        """
        local = self.path(name)
        if not self.exists(name):
            raise SyncError(name, "primary", f"nothing to sync at {local}")

        transferred: dict[str, int] = {}
        failures: list[tuple[str, str]] = []

        for backend in self.backends:
            try:
                transferred[backend.name] = backend.push(local, name, overwrite=overwrite)
            except OSError as e:
                logs.error(f"[StorageAccessor] sync {name} → {backend.name} failed: {e}")
                failures.append((backend.name, str(e)))

        if failures:
            backend_names = ",".join(b for b, _ in failures)
            raise SyncError(name, backend_names, "; ".join(r for _, r in failures))

        logs.info(f"[StorageAccessor] synced {name} → {transferred or 'no backends'}")
        return transferred
