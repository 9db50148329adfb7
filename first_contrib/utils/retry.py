#!filepath: first_contrib/utils/retry.py
import random
import time
from typing import Callable, Tuple, Type

from first_contrib.utils.logger import logs


class Retry:
    """
    同步重试（指数退避 + jitter）

    dataset 构建本身不重试；mirror 推送这类可恢复的失败由调用方
    （CLI sync）用 Retry.run 包一层。
    """

    @staticmethod
    def backoff_delays(max_attempts: int, delay: float, backoff: float) -> list[float]:
        """第 k 次失败后的等待秒数（不含 jitter），共 max_attempts - 1 个"""
        return [delay * (backoff ** k) for k in range(max_attempts - 1)]

    @staticmethod
    def run(
        func: Callable,
        *args,
        exceptions: Tuple[Type[Exception], ...] = (Exception,),
        max_attempts: int = 3,
        delay: float = 1.0,
        backoff: float = 2.0,
        jitter: bool = True,
        **kwargs,
    ):
        waits = Retry.backoff_delays(max_attempts, delay, backoff)

        for attempt, wait in enumerate(waits, start=1):
            try:
                return func(*args, **kwargs)
            except exceptions as e:
                if jitter:
                    wait *= random.uniform(0.8, 1.2)
                logs.warning(
                    f"[Retry] {func.__name__} attempt {attempt}/{max_attempts} failed: {e}; "
                    f"retry in {wait:.2f}s"
                )
                time.sleep(wait)

        try:
            return func(*args, **kwargs)
        except exceptions:
            logs.error(f"[Retry] {func.__name__} failed after {max_attempts} attempts")
            raise
