"""
Загрузчик конфигурации из config.yaml.

Порядок: значения по умолчанию -> YAML -> переменные окружения.
Результат валидируется pydantic схемой (core/config_schema.py):
    config = load_config("config.yaml")
    config.seiso.url
    config.listener.queue_url
"""

import os
import logging
from typing import Any, Optional

import yaml

from .core.config_schema import AppConfig, validate_config
from .core.constants import DEFAULT_PAGE_SIZE, MAX_POLL_TIMEOUT
from .core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Где искать файл, если путь не указан явно
SEARCH_PATHS = [
    "config.yaml",
    "config.yml",
    "seiso_aws_sync.yaml",
]

# Переменная окружения -> (секция, ключ)
ENV_OVERRIDES = {
    "SEISO_URL": ("seiso", "url"),
    "SEISO_USERNAME": ("seiso", "username"),
    "SEISO_PASSWORD": ("seiso", "password"),
    "SQS_QUEUE_URL": ("listener", "queue_url"),
    "AWS_REGION": ("aws", "region"),
    "AWS_ACCESS_KEY_ID": ("aws", "access_key_id"),
    "AWS_SECRET_ACCESS_KEY": ("aws", "secret_access_key"),
}


class Config:
    """
    Сборщик конфигурации.

    Пример:
        cfg = Config("config.yaml")
        cfg.data["seiso"]["url"]   # сырой словарь
        cfg.validate()             # AppConfig
    """

    def __init__(self, config_file: Optional[str] = None):
        self.config_file: Optional[str] = None
        self.data = self._get_defaults()
        self._load_yaml(config_file)
        self._load_env()

    def _get_defaults(self) -> dict:
        """Значения по умолчанию."""
        return {
            "seiso": {
                "url": "",
                "username": "",
                "password": "",
                "password_encoded": True,
                "verify_ssl": False,
                "timeout": 30,
                "page_size": DEFAULT_PAGE_SIZE,
                "max_workers": 8,
                "environments": {},
                "data_centers": {},
            },
            "aws": {
                "region": "us-west-2",
                "access_key_id": None,
                "secret_access_key": None,
            },
            "listener": {
                "queue_url": "",
                "poll_timeout": MAX_POLL_TIMEOUT,
                "processing_timeout": None,
            },
            "mapper": {
                "tag_mappings": [],
            },
            "custom_transformers": [],
            "orchestrator": {
                "max_workers": 8,
                "stop_timeout": 60,
            },
            "logging": {
                "level": "INFO",
                "json_format": False,
                "console": True,
                "file_path": None,
            },
        }

    def _load_yaml(self, config_file: Optional[str] = None) -> None:
        """Загружает настройки из YAML файла."""
        if config_file:
            if not os.path.exists(config_file):
                raise ConfigError("Файл конфигурации не найден", config_file=config_file)
        else:
            for path in SEARCH_PATHS:
                if os.path.exists(path):
                    config_file = path
                    break

        if not config_file:
            logger.debug("config.yaml не найден, используем настройки по умолчанию")
            return

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Ошибка чтения YAML: {e}", config_file=config_file)

        if not isinstance(yaml_data, dict):
            raise ConfigError("Корень конфигурации должен быть словарём", config_file=config_file)

        # Мержим с дефолтами
        self._merge_dict(self.data, yaml_data)
        self.config_file = config_file
        logger.debug(f"Конфигурация загружена из {config_file}")

    def _load_env(self) -> None:
        """Загружает настройки из переменных окружения."""
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                self.data[section][key] = value

    def _merge_dict(self, base: dict, override: dict) -> None:
        """Рекурсивно мержит словари."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_dict(base[key], value)
            else:
                base[key] = value

    def get(self, section: str, key: Optional[str] = None, default: Any = None) -> Any:
        """Значение секции или ключа секции."""
        value = self.data.get(section, default)
        if key is None:
            return value
        if not isinstance(value, dict):
            return default
        return value.get(key, default)

    def validate(self) -> AppConfig:
        """
        Проверяет конфигурацию схемой.

        Raises:
            ConfigError: При ошибке валидации
        """
        return validate_config(self.data, config_file=self.config_file or "config.yaml")


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """
    Загружает и валидирует конфигурацию.

    Args:
        config_file: Путь к YAML файлу (опционально)

    Returns:
        AppConfig: Валидированная конфигурация

    Raises:
        ConfigError: Файл не найден, не читается или не прошёл валидацию
    """
    return Config(config_file).validate()
