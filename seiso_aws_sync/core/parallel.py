"""
Параллельное выполнение независимых операций.

settle_all() дожидается завершения всех веток, даже если часть упала;
gather() после этого пробрасывает первую ошибку. Компенсирующих
откатов нет: успешные ветки остаются применёнными.

Пример использования:
    outcomes = settle_all({
        "seiso": client.connect,
        "listener": listener.start,
    })
    failed = [o for o in outcomes if not o.ok]
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .exceptions import format_error_for_log
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8

Calls = Union[Dict[str, Callable[[], Any]], List[Callable[[], Any]]]


@dataclass
class Outcome:
    """Результат одной ветки."""
    key: str
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def settle_all(calls: Calls, max_workers: int = DEFAULT_MAX_WORKERS) -> List[Outcome]:
    """
    Выполняет вызовы параллельно и ждёт завершения каждого.

    Args:
        calls: dict {key: callable} или список callable (key = индекс)
        max_workers: Максимум потоков

    Returns:
        List[Outcome]: Результаты в порядке calls
    """
    if isinstance(calls, dict):
        items = list(calls.items())
    else:
        items = [(str(i), call) for i, call in enumerate(calls)]

    if not items:
        return []

    if len(items) == 1:
        key, call = items[0]
        return [_run_one(key, call)]

    outcomes: Dict[str, Outcome] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        futures = {executor.submit(call): key for key, call in items}

        for future in as_completed(futures):
            key = futures[future]
            try:
                outcomes[key] = Outcome(key=key, result=future.result())
            except Exception as e:
                logger.debug(f"Ветка {key} завершилась ошибкой: {format_error_for_log(e)}")
                outcomes[key] = Outcome(key=key, error=e)

    return [outcomes[key] for key, _ in items]


def _run_one(key: str, call: Callable[[], Any]) -> Outcome:
    try:
        return Outcome(key=key, result=call())
    except Exception as e:
        return Outcome(key=key, error=e)


def first_error(outcomes: List[Outcome]) -> Optional[BaseException]:
    """Первая ошибка в порядке calls (или None)."""
    for outcome in outcomes:
        if outcome.error is not None:
            return outcome.error
    return None


def gather(calls: Calls, max_workers: int = DEFAULT_MAX_WORKERS) -> List[Any]:
    """
    Как settle_all, но после завершения всех веток пробрасывает первую ошибку.

    Returns:
        List: Результаты в порядке calls
    """
    outcomes = settle_all(calls, max_workers=max_workers)
    error = first_error(outcomes)
    if error is not None:
        failed = sum(1 for o in outcomes if not o.ok)
        if failed > 1:
            logger.warning(f"Ошибок в параллельных ветках: {failed} из {len(outcomes)}")
        raise error
    return [o.result for o in outcomes]
