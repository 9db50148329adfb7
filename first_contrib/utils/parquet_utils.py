# first_contrib/utils/parquet_utils.py
from pathlib import Path
import os
import pyarrow.parquet as pq
import pyarrow as pa

from first_contrib.utils.filesystem import FileSystem


class ParquetAtomicWriter:
    """
    Parquet 原子写工具（冻结版）

    语义：
      - 永远写到 *.tmp
      - 成功后 rename → 正式 parquet

    两阶段用法（多分区 batch）：
      - stage_table(): 只写 *.tmp，返回 tmp 路径
      - commit(): 全部 stage 成功后再逐个 rename
    """

    @staticmethod
    def tmp_path(output_path: Path) -> Path:
        # "." 前缀：dataset discovery 默认忽略，读者看不到半成品
        output_path = Path(output_path)
        return output_path.with_name(f".{output_path.name}.tmp")

    @staticmethod
    def stage_table(table: pa.Table, output_path: Path, **kwargs) -> Path:
        output_path = Path(output_path)
        FileSystem.ensure_dir(output_path.parent)

        tmp_path = ParquetAtomicWriter.tmp_path(output_path)

        # 1. 写入临时文件
        pq.write_table(table, tmp_path, **kwargs)

        # 2. fsync
        with open(tmp_path, "rb") as f:
            os.fsync(f.fileno())

        return tmp_path

    @staticmethod
    def commit(tmp_path: Path, output_path: Path) -> None:
        # 3. 原子替换
        Path(tmp_path).replace(output_path)
