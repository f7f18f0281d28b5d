"""
Типизированные исключения для Seiso AWS Sync.

Иерархия:
    SeisoSyncError (базовый)
    ├── ValidationError (невалидные входные данные, до обращения к API)
    ├── ConsistencyError (ноль или несколько совпадений там, где ожидается одно)
    ├── TransformerError (ошибка custom transformer в цепочке)
    ├── FatalAuthError (credentials/авторизация, останавливает Listener)
    ├── TransientError (сеть и прочие ошибки удалённых API)
    │   └── InventoryAPIError (HTTP ошибка Seiso API)
    │       ├── NotFoundError (404)
    │       └── ConflictError (409)
    ├── TimeoutError (истёк таймаут ожидания)
    ├── LifecycleError (ошибка запуска/остановки оркестратора)
    └── ConfigError (конфигурация)

Пример использования:
    from seiso_aws_sync.core.exceptions import ConflictError, ConsistencyError

    try:
        client.upsert_node(node)
    except ConsistencyError as e:
        logger.error(f"Дубликаты в Seiso: {e}")
"""

from typing import Any, List, Optional


class SeisoSyncError(Exception):
    """
    Базовое исключение для всех ошибок Seiso AWS Sync.

    Attributes:
        message: Описание ошибки
        details: Дополнительные детали (dict)
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> dict:
        """Сериализация для логов/отчётов."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SeisoSyncError):
    """
    Невалидные входные данные. Обнаруживается до любого удалённого вызова.

    Attributes:
        errors: Список ошибок валидации

    Пример:
        raise ValidationError("Node не прошёл валидацию", errors=["ports empty"])
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        details: Optional[dict] = None,
    ):
        self.errors = list(errors or [])
        details = details or {}
        if self.errors:
            details["errors"] = self.errors
        super().__init__(message, details)


class ConsistencyError(SeisoSyncError):
    """
    Неконсистентные данные в Seiso.

    Поиск после conflict не нашёл запись или нашёл несколько;
    либо дубликаты node обнаружены до создания. Никогда не разрешается
    автоматически.

    Attributes:
        resource: Тип ресурса (nodes, machines, ...)
        key: Natural key, по которому шёл поиск
        matches: Количество найденных записей
    """

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        key: Optional[str] = None,
        matches: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.resource = resource
        self.key = key
        self.matches = matches
        details = details or {}
        if resource:
            details["resource"] = resource
        if key:
            details["key"] = key
        if matches is not None:
            details["matches"] = matches
        super().__init__(message, details)


class TransformerError(SeisoSyncError):
    """
    Ошибка custom transformer.

    Attributes:
        transformer: Имя transformer который упал
        cause: Исходное исключение
    """

    def __init__(
        self,
        message: str,
        transformer: str = "",
        cause: Optional[BaseException] = None,
        details: Optional[dict] = None,
    ):
        self.transformer = transformer
        self.cause = cause
        details = details or {}
        details["transformer"] = transformer
        if cause is not None:
            details["cause"] = format_error_for_log(cause)
        super().__init__(message, details)


class FatalAuthError(SeisoSyncError):
    """
    Ошибка credentials/авторизации. Listener останавливается полностью.

    Пример:
        raise FatalAuthError("Invalid token", service="sqs")
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.service = service
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message, details)


class TransientError(SeisoSyncError):
    """
    Любая другая ошибка удалённого вызова или сети.

    Текущая единица работы отбрасывается, цикл продолжается.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.service = service
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message, details)


class InventoryAPIError(TransientError):
    """
    HTTP ошибка Seiso API.

    Attributes:
        status_code: HTTP код ответа
        endpoint: Ресурс API

    Пример:
        raise InventoryAPIError("Bad request", status_code=400, endpoint="nodes")
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.endpoint = endpoint
        details = details or {}
        if status_code:
            details["status_code"] = status_code
        if endpoint is not None:
            details["endpoint"] = endpoint
        super().__init__(message, service="seiso", details=details)


class NotFoundError(InventoryAPIError):
    """Ресурс не найден (404)."""
    pass


class ConflictError(InventoryAPIError):
    """Конфликт уникальности (409). Разрешается повторным поиском по natural key."""
    pass


class TimeoutError(SeisoSyncError):
    """
    Истёк таймаут ожидания внешнего условия.

    Attributes:
        timeout_seconds: Значение таймаута
    """

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        details: Optional[dict] = None,
    ):
        self.timeout_seconds = timeout_seconds
        details = details or {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message, details)


class LifecycleError(SeisoSyncError):
    """
    Ошибка запуска/остановки оркестратора.

    Attributes:
        state: Состояние оркестратора в момент ошибки
    """

    def __init__(
        self,
        message: str,
        state: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.state = state
        details = details or {}
        if state:
            details["state"] = state
        super().__init__(message, details)


class ConfigError(SeisoSyncError):
    """
    Ошибка конфигурации.

    Attributes:
        config_file: Путь к файлу конфигурации
        key: Ключ конфигурации с ошибкой

    Пример:
        raise ConfigError("Missing required field", config_file="config.yaml", key="seiso.url")
    """

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        key: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.config_file = config_file
        self.key = key
        details = details or {}
        if config_file:
            details["config_file"] = config_file
        if key:
            details["key"] = key
        super().__init__(message, details)


# === Utility Functions ===

def format_error_for_log(error: BaseException) -> str:
    """
    Форматирует ошибку для вывода в лог.

    Args:
        error: Исключение

    Returns:
        str: Отформатированная строка ошибки
    """
    if isinstance(error, SeisoSyncError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"


def is_retryable(error: Any) -> bool:
    """
    Проверяет, имеет ли смысл повторить операцию (повторная доставка сообщения).

    4xx ответы Seiso не исправятся повтором.

    Args:
        error: Исключение

    Returns:
        bool: True если можно retry
    """
    if isinstance(error, InventoryAPIError):
        return not (error.status_code and 400 <= error.status_code < 500)
    return isinstance(error, (TransientError, TimeoutError))
