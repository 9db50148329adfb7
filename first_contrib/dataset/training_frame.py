#!filepath: first_contrib/dataset/training_frame.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.dataset as ds

from first_contrib.utils.datetime_utils import DateLike, DateTimeUtils
from first_contrib.utils.logger import logs

DEFAULT_FEATURE_PATTERN = r"^(email|contribution|address|ticket).+(amt|count|level|max|min)|timestamp"


@dataclass
class TrainingFrame:
    """
    训练读取结果

    - frame          : 内存 DataFrame（event 为 "TRUE"/"FALSE" categorical）
    - valid_index    : date >= predict_since 的行位置（验证 / 预测集）
    - feature_columns: 按 feature_pattern 选出的特征列
    """

    frame: pd.DataFrame
    valid_index: np.ndarray
    feature_columns: List[str] = field(default_factory=list)

    @property
    def train_index(self) -> np.ndarray:
        return np.setdiff1d(np.arange(len(self.frame)), self.valid_index)


def read_training_frame(
        dataset: ds.Dataset,
        predict_since: DateLike,
        downsample_read: float = 0.1,
        seed: Optional[int] = None,
        feature_pattern: str = DEFAULT_FEATURE_PATTERN,
) -> TrainingFrame:
    """
    predict_since 之后的行、以及所有 event 行全部保留；
    更早的非 event 行按 downsample_read 抽样。
    """
    if not 0 < downsample_read <= 1:
        raise ValueError(f"downsample_read must be in (0, 1], got {downsample_read}")

    cutoff = DateTimeUtils.to_date(predict_since)
    cutoff_scalar = pa.scalar(cutoff, type=pa.date32())
    date_f, event_f = ds.field("date"), ds.field("event")

    kept = dataset.to_table(filter=(date_f >= cutoff_scalar) | (event_f == True)).to_pandas()  # noqa: E712
    history = dataset.to_table(filter=(date_f < cutoff_scalar) & (event_f == False)).to_pandas()  # noqa: E712
    sampled = history.sample(frac=downsample_read, random_state=seed)

    frame = pd.concat([kept, sampled], ignore_index=True)

    frame["event"] = pd.Categorical(
        np.where(frame["event"].astype(bool), "TRUE", "FALSE"),
        categories=["FALSE", "TRUE"],
    )
    frame["date"] = pd.to_datetime(frame["date"])

    for col in frame.columns:
        if col in ("event", "date"):
            continue
        s = frame[col]
        if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
            frame[col] = s.astype("float64")

    valid_index = np.flatnonzero((frame["date"] >= pd.Timestamp(cutoff)).to_numpy())

    pattern = re.compile(feature_pattern, flags=re.IGNORECASE)
    feature_columns = [c for c in frame.columns if pattern.search(c)]

    logs.info(
        f"[read_training_frame] kept={len(kept)} sampled={len(sampled)}/{len(history)} "
        f"valid={len(valid_index)} features={len(feature_columns)}"
    )
    return TrainingFrame(frame=frame, valid_index=valid_index, feature_columns=feature_columns)
