"""
Pydantic схемы для валидации config.yaml.

Валидация происходит при загрузке конфигурации.
Ошибки валидации выбрасывают ConfigError.

Пример использования:
    from seiso_aws_sync.core.config_schema import validate_config

    config_dict = yaml.safe_load(open("config.yaml"))
    validated = validate_config(config_dict)  # raises ConfigError on failure
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from .constants import DEFAULT_PAGE_SIZE, MAX_POLL_TIMEOUT
from .exceptions import ConfigError


class SeisoConfig(BaseModel):
    """Настройки Seiso API."""
    url: str = ""
    username: str = ""
    password: str = ""
    password_encoded: bool = True
    verify_ssl: bool = False
    timeout: int = Field(default=30, ge=1, le=300)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=2000)
    max_workers: int = Field(default=8, ge=1, le=64)
    # Переопределения справочников: key -> запись Seiso (с _links.self.href)
    environments: Dict[str, Any] = Field(default_factory=dict)
    data_centers: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Проверяет что URL валидный."""
        if v and not v.startswith(("http://", "https://")):
            raise PydanticCustomError(
                "invalid_url",
                "Seiso URL должен начинаться с http:// или https://",
            )
        return v.rstrip("/")


class AwsConfig(BaseModel):
    """Настройки AWS. Без ключей boto3 использует стандартную цепочку credentials."""
    region: str = "us-west-2"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


class ListenerConfig(BaseModel):
    """Настройки SQS listener."""
    queue_url: str = ""
    poll_timeout: int = Field(default=MAX_POLL_TIMEOUT, ge=0, le=MAX_POLL_TIMEOUT)
    processing_timeout: Optional[int] = Field(default=None, ge=0, le=43200)


class TagMapping(BaseModel):
    """1:1 соответствие AWS тега атрибуту NodeRecord."""
    tag_name: str
    property_name: str


class MapperConfig(BaseModel):
    """Настройки EventMapper."""
    tag_mappings: List[TagMapping] = Field(default_factory=list)


class CustomTransformerConfig(BaseModel):
    """Подключаемый custom transformer."""
    name: str
    path: str = Field(pattern=r"^[\w.]+:\w+$")
    config: Dict[str, Any] = Field(default_factory=dict)


class OrchestratorConfig(BaseModel):
    """Настройки оркестратора."""
    max_workers: int = Field(default=8, ge=1, le=64)
    stop_timeout: int = Field(default=60, ge=1, le=3600)


class LoggingConfig(BaseModel):
    """Настройки логирования."""
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_format: bool = False
    console: bool = True
    file_path: Optional[str] = None
    rotation: str = Field(default="size", pattern="^(size|time)$")
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)  # min 1KB
    backup_count: int = Field(default=5, ge=1, le=100)
    when: str = "midnight"
    interval: int = Field(default=1, ge=1)


class AppConfig(BaseModel):
    """Полная конфигурация приложения."""
    seiso: SeisoConfig = Field(default_factory=SeisoConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    listener: ListenerConfig = Field(default_factory=ListenerConfig)
    mapper: MapperConfig = Field(default_factory=MapperConfig)
    custom_transformers: List[CustomTransformerConfig] = Field(default_factory=list)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def validate_config(config_dict: dict, config_file: str = "config.yaml") -> AppConfig:
    """
    Валидирует словарь конфигурации.

    Args:
        config_dict: Словарь из YAML
        config_file: Имя файла (для сообщения об ошибке)

    Returns:
        AppConfig: Валидированная конфигурация

    Raises:
        ConfigError: При ошибке валидации
    """
    try:
        return AppConfig(**config_dict)
    except Exception as e:
        # Форматируем ошибку Pydantic в читаемый вид
        error_msg = str(e)
        key = None
        if hasattr(e, "errors"):
            errors = e.errors()
            if errors:
                first_error = errors[0]
                key = ".".join(str(x) for x in first_error.get("loc", []))
                msg = first_error.get("msg", "Unknown error")
                error_msg = f"{key}: {msg}"

        raise ConfigError(
            message=f"Ошибка валидации конфигурации: {error_msg}",
            config_file=config_file,
            key=key,
        )


def get_default_config() -> AppConfig:
    """Возвращает конфигурацию по умолчанию."""
    return AppConfig()
