# first_contrib/config/read_config.py
from typing import Optional

from pydantic import BaseModel, Field


class ReadConfig(BaseModel):
    """训练读取（read_training_frame）默认参数"""
    predict_days: int = Field(30, ge=0)
    downsample_read: float = Field(0.1, gt=0, le=1)
    seed: Optional[int] = None
    feature_pattern: str = r"^(email|contribution|address|ticket).+(amt|count|level|max|min)|timestamp"
