"""
Логирование Seiso AWS Sync.

Два формата записи:
- human-readable для консоли оператора;
- JSON (одна запись на строку) для сборщиков логов.

Поля, переданные именованными аргументами, попадают в запись как
структурированные атрибуты. К каждой записи добавляется run_id
текущего запуска pipeline (см. core/context.py).

Пример использования:
    from seiso_aws_sync.core.logging import setup_logging, get_logger

    setup_logging(json_format=False)

    logger = get_logger(__name__)
    logger.info("Rotation status обновлён", instance="i-0abc", operation="rotate-in")

Запись в JSON:
    {"timestamp": "2025-12-27T10:30:15.123456", "level": "INFO",
     "logger": "seiso_aws_sync.orchestrator", "thread": "seiso-aws-listener",
     "message": "Rotation status обновлён", "instance": "i-0abc",
     "operation": "rotate-in", "run_id": "2025-12-27T10-30-00"}
"""

import json
import logging
import logging.handlers
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

# Библиотеки, которые на INFO пишут о каждом HTTP запросе
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")

# Атрибуты, которые есть у любого LogRecord
_STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class RotationType(str, Enum):
    """Ротация файла логов."""
    SIZE = "size"
    TIME = "time"
    NONE = "none"


@dataclass
class LogConfig:
    """
    Настройки логирования (секция logging в config.yaml).

    Attributes:
        level: Уровень (logging.INFO, ...)
        json_format: Файл в JSON (консоль всегда human-readable)
        console: Писать в stderr
        file_path: Файл логов (None = без файла)
        rotation: size / time / none
        max_bytes: Порог size-ротации
        backup_count: Сколько старых файлов хранить
        when: Интервал time-ротации (S, M, H, D, W0-W6, midnight)
        interval: Множитель для when
    """
    level: int = logging.INFO
    json_format: bool = False
    console: bool = True
    file_path: Optional[str] = None
    rotation: RotationType = RotationType.SIZE
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    when: str = "midnight"
    interval: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogConfig":
        """Из словаря (LoggingConfig.model_dump()); уровень можно задать строкой."""
        defaults = cls()
        level = data.get("level", defaults.level)
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.INFO

        return cls(
            level=level,
            json_format=bool(data.get("json_format", defaults.json_format)),
            console=bool(data.get("console", defaults.console)),
            file_path=data.get("file_path") or None,
            rotation=RotationType(data.get("rotation") or defaults.rotation),
            max_bytes=data.get("max_bytes", defaults.max_bytes),
            backup_count=data.get("backup_count", defaults.backup_count),
            when=data.get("when", defaults.when),
            interval=data.get("interval", defaults.interval),
        )


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """Одна JSON запись на строку; структурированные поля на верхнем уровне."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        entry.update(_extra_fields(record))

        if record.exc_info:
            error = record.exc_info[1]
            # SeisoSyncError умеет сериализоваться сам
            if hasattr(error, "to_dict"):
                entry["error"] = error.to_dict()
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    """
    Формат: TIMESTAMP - LEVEL - [run_id] MESSAGE (instance=..., node=...)

    Записи не из главного потока помечаются именем потока.
    """

    # Порядок вывода известных полей; прочие поля не выводятся
    FIELDS = ("instance", "node", "resource", "operation", "queue")

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname.ljust(8),
        ]
        if record.threadName != "MainThread":
            parts.append(f"<{record.threadName}>")

        run_id = getattr(record, "run_id", None)
        message = f"[{run_id}] {record.getMessage()}" if run_id else record.getMessage()

        details = [
            f"{name}={getattr(record, name)}"
            for name in self.FIELDS
            if getattr(record, name, None)
        ]
        if details:
            message = f"{message} ({', '.join(details)})"

        line = " - ".join(parts + [message])
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger:
    """
    logging.Logger с именованными полями:
        logger.warning("Node не найден", instance="i-0abc", resource="nodes")

    bind() возвращает логгер с полями по умолчанию (например queue
    для Listener).
    """

    def __init__(self, name: str, fields: Optional[Dict[str, Any]] = None):
        self._logger = logging.getLogger(name)
        self._fields = dict(fields or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **fields: Any) -> "StructuredLogger":
        return StructuredLogger(self.name, {**self._fields, **fields})

    def log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = {**self._fields, **fields}
        if "run_id" not in extra:
            from .context import get_current_context
            ctx = get_current_context()
            if ctx is not None:
                extra["run_id"] = ctx.run_id

        # stacklevel=3: запись указывает на вызывающий код, а не на эту обёртку
        self._logger.log(level, message, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self.log(logging.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """ERROR с traceback текущего исключения."""
        self.log(logging.ERROR, message, exc_info=True, **fields)


_loggers: Dict[str, StructuredLogger] = {}
_loggers_lock = threading.Lock()


def get_logger(name: str) -> StructuredLogger:
    """StructuredLogger по имени модуля (кэшируется)."""
    with _loggers_lock:
        logger = _loggers.get(name)
        if logger is None:
            logger = _loggers[name] = StructuredLogger(name)
        return logger


def _install(handlers: List[logging.Handler], level: int) -> None:
    """Заменяет handlers root логгера и приглушает болтливые библиотеки."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)
    root.setLevel(level)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def setup_logging(json_format: bool = False, level: int = logging.INFO, stream: Any = None) -> None:
    """
    Логирование в один поток (по умолчанию stderr).

    Example:
        setup_logging(json_format=args.json_logs)
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    _install([handler], level)


def _file_handler(config: LogConfig) -> logging.Handler:
    path = Path(config.file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if config.rotation == RotationType.SIZE:
        return logging.handlers.RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    if config.rotation == RotationType.TIME:
        return logging.handlers.TimedRotatingFileHandler(
            path,
            when=config.when,
            interval=config.interval,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def setup_logging_from_config(config: LogConfig) -> None:
    """
    Логирование по секции logging config.yaml.

    Консоль всегда human-readable; файл в JSON если json_format.
    """
    handlers: List[logging.Handler] = []

    if config.console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(HumanFormatter())
        handlers.append(console)

    if config.file_path:
        file_handler = _file_handler(config)
        file_handler.setFormatter(JSONFormatter() if config.json_format else HumanFormatter())
        handlers.append(file_handler)

    _install(handlers, config.level)
