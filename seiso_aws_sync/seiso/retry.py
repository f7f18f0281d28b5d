"""
Conflict-tolerant создание записей.

Seiso не поддерживает транзакции, уникальность проверяется на стороне
API ответом 409. Параллельный создатель мог успеть раньше, поэтому
после conflict запись перечитывается по natural key (name/key).

Пример использования:
    service = create_or_fetch(
        create=lambda: client.request("services", payload, method="POST"),
        fetch=lambda: client.get_service(key),
        resource="services",
        key=key,
    )
"""

import logging
from typing import Any, Callable, Dict, Optional

from ..core.exceptions import ConflictError, ConsistencyError
from .client.base import as_list

logger = logging.getLogger(__name__)


def single_match(
    matches: Any,
    resource: str,
    key: Optional[str],
    operation: str = "create",
) -> Dict[str, Any]:
    """
    Проверяет что поиск после conflict нашёл ровно одну запись.

    Args:
        matches: Результат поиска (None, запись или список)
        resource: Тип ресурса (для сообщения)
        key: Natural key
        operation: create / update

    Returns:
        dict: Единственная найденная запись

    Raises:
        ConsistencyError: Ноль или несколько совпадений
    """
    records = as_list(matches)
    if not records:
        raise ConsistencyError(
            f"{resource}: {operation} завершился conflict, но запись не найдена",
            resource=resource,
            key=key,
            matches=0,
        )
    if len(records) > 1:
        raise ConsistencyError(
            f"{resource}: {operation} завершился conflict, найдено несколько записей",
            resource=resource,
            key=key,
            matches=len(records),
        )
    return records[0]


def create_or_fetch(
    create: Callable[[], Any],
    fetch: Callable[[], Any],
    resource: str,
    key: Optional[str],
    operation: str = "create",
) -> Dict[str, Any]:
    """
    Выполняет create; при ConflictError перечитывает запись через fetch.

    Любая другая ошибка пробрасывается без изменений.

    Raises:
        ConsistencyError: Поиск после conflict неоднозначен
    """
    try:
        return create()
    except ConflictError:
        logger.info(f"{resource} {key}: conflict при {operation}, ищем существующую запись")
        return single_match(fetch(), resource, key, operation)
