#!filepath: first_contrib/utils/datetime_utils.py
from __future__ import annotations
from datetime import datetime, timedelta, time, date
from typing import Tuple, Union

import pandas as pd

from first_contrib.utils.errors import UserInputError

DateLike = Union[str, date, datetime, pd.Timestamp]


class DateTimeUtils:
    """
    日期工具（naive，本地日历日）

    - since / until 统一转成 date
    - 时间窗口永远是左闭右开 [since, until)
    """

    DEFAULT_LOOKBACK_DAYS = 365 * 5

    # ================================================================
    # 任意输入 → date
    # ================================================================
    @classmethod
    def to_date(cls, value: DateLike) -> date:
        """
        输入可能为：
            "2024-03-01"
            "2024/03/01"
            "20240301"
            datetime / pd.Timestamp / date
        """
        if isinstance(value, pd.Timestamp):
            return value.date()

        if isinstance(value, datetime):
            return value.date()

        if isinstance(value, date):
            return value

        s = str(value).strip()
        for fmt, width in [("%Y-%m-%d", 10), ("%Y/%m/%d", 10), ("%Y%m%d", 8)]:
            try:
                return datetime.strptime(s[:width], fmt).date()
            except ValueError:
                pass

        raise UserInputError(f"无法解析日期: {value}")

    # ================================================================
    # date → 当日零点
    # ================================================================
    @classmethod
    def start_of_day(cls, value: DateLike) -> datetime:
        return datetime.combine(cls.to_date(value), time.min)

    # ================================================================
    # 默认窗口 & 校验
    # ================================================================
    @classmethod
    def resolve_window(
            cls,
            since: DateLike | None,
            until: DateLike | None,
            today: date | None = None,
            lookback_days: int | None = None,
    ) -> Tuple[date, date]:
        today = today or date.today()
        if lookback_days is None:
            lookback_days = cls.DEFAULT_LOOKBACK_DAYS

        until_d = cls.to_date(until) if until is not None else today
        since_d = (
            cls.to_date(since)
            if since is not None
            else today - timedelta(days=lookback_days)
        )

        if since_d >= until_d:
            raise UserInputError(f"since ({since_d}) must be before until ({until_d})")

        return since_d, until_d

    # ================================================================
    # 窗口边界 → 与列同时区的 Timestamp
    # ================================================================
    @classmethod
    def bound_for(cls, value: DateLike, series: pd.Series) -> pd.Timestamp:
        ts = pd.Timestamp(cls.start_of_day(value))
        tz = getattr(series.dt, "tz", None)
        return ts.tz_localize(tz) if tz is not None else ts
