"""
Core модули Seiso AWS Sync.

- exceptions: Типизированные исключения
- logging / context: Structured logging и RunContext
- config_schema / credentials: Схема конфигурации и учётные данные
- models: Модели данных (NodeRecord, RotationBatch, ...)
- events: Канал событий между компонентами
- parallel / polling: Параллельные вызовы и ожидание условий
- constants: Константы и маппинги
"""

from .context import RunContext, get_current_context, set_current_context
from .logging import (
    get_logger,
    setup_logging,
    setup_logging_from_config,
    StructuredLogger,
    JSONFormatter,
    HumanFormatter,
    LogConfig,
    RotationType,
)
from .exceptions import (
    SeisoSyncError,
    ValidationError,
    ConsistencyError,
    TransformerError,
    FatalAuthError,
    TransientError,
    InventoryAPIError,
    NotFoundError,
    ConflictError,
    TimeoutError,
    LifecycleError,
    ConfigError,
    format_error_for_log,
    is_retryable,
)
from .models import (
    OrchestratorState,
    ListenerState,
    NodeRecord,
    QueueMessage,
    RotationBatch,
    RotationResult,
    RotationBatchResult,
    IpSyncResult,
)
from .events import EventChannel, StoppedEvent

__all__ = [
    # Context
    "RunContext",
    "get_current_context",
    "set_current_context",
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    "StructuredLogger",
    "JSONFormatter",
    "HumanFormatter",
    "LogConfig",
    "RotationType",
    # Exceptions
    "SeisoSyncError",
    "ValidationError",
    "ConsistencyError",
    "TransformerError",
    "FatalAuthError",
    "TransientError",
    "InventoryAPIError",
    "NotFoundError",
    "ConflictError",
    "TimeoutError",
    "LifecycleError",
    "ConfigError",
    "format_error_for_log",
    "is_retryable",
    # Models
    "OrchestratorState",
    "ListenerState",
    "NodeRecord",
    "QueueMessage",
    "RotationBatch",
    "RotationResult",
    "RotationBatchResult",
    "IpSyncResult",
    # Events
    "EventChannel",
    "StoppedEvent",
]
