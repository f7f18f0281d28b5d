"""
Ожидание внешнего условия с ограничением по времени.
"""

import time
from typing import Callable, Optional

from .exceptions import TimeoutError

MIN_INTERVAL = 0.025
DEFAULT_INTERVAL = 0.1
DEFAULT_MAX_WAIT = 20.0


def sleep_until(
    test: Callable[[], bool],
    interval: Optional[float] = None,
    max_wait: Optional[float] = None,
) -> None:
    """
    Ждёт пока test() не вернёт True.

    Args:
        test: Проверяемое условие
        interval: Пауза между проверками (не меньше MIN_INTERVAL)
        max_wait: Максимальное ожидание в секундах (отрицательное: без ограничения)

    Raises:
        TimeoutError: Условие не выполнилось за max_wait
    """
    if interval is None:
        interval = DEFAULT_INTERVAL
    interval = max(interval, MIN_INTERVAL)

    if max_wait is None:
        max_wait = DEFAULT_MAX_WAIT

    deadline = time.monotonic() + max_wait if max_wait >= 0 else None

    while True:
        if test():
            return
        if deadline is not None and time.monotonic() >= deadline:
            raise TimeoutError(
                "Timed out waiting for operation to complete",
                timeout_seconds=max_wait,
            )
        time.sleep(interval)
