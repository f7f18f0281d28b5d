"""
Учётные данные Seiso и AWS.

Пароль Seiso хранится в конфигурации в base64 (password_encoded=True)
и декодируется только при создании клиента.

Пример использования:
    creds = SeisoCredentials.from_config(app_config.seiso)
    client = SeisoClient(url, creds.username, creds.password)
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


def encode_secret(value: str) -> str:
    """Кодирует строку в base64."""
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_secret(value: str) -> str:
    """
    Декодирует base64 строку.

    Raises:
        ConfigError: Строка не является валидным base64
    """
    try:
        return base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise ConfigError("Пароль Seiso не является валидной base64 строкой", key="seiso.password")


@dataclass
class SeisoCredentials:
    """
    Учётные данные Seiso API (HTTP basic auth).

    Attributes:
        username: Имя пользователя
        password: Пароль (уже декодированный)
    """
    username: str
    password: str

    # Имена переменных окружения
    ENV_USERNAME = "SEISO_USERNAME"
    ENV_PASSWORD = "SEISO_PASSWORD"

    @classmethod
    def from_config(cls, seiso_config) -> "SeisoCredentials":
        """
        Создаёт credentials из секции seiso конфигурации.

        Raises:
            ConfigError: Логин или пароль не указан
        """
        username = seiso_config.username or os.environ.get(cls.ENV_USERNAME, "")
        password = seiso_config.password or os.environ.get(cls.ENV_PASSWORD, "")

        if not username or not password:
            raise ConfigError(
                "Не указаны учётные данные Seiso. Укажите seiso.username/seiso.password "
                f"или {cls.ENV_USERNAME}/{cls.ENV_PASSWORD}",
                key="seiso.username",
            )

        if seiso_config.password_encoded:
            password = decode_secret(password)

        return cls(username=username, password=password)

    def __repr__(self) -> str:
        return f"SeisoCredentials(username={self.username!r}, password='***')"


@dataclass
class AwsCredentials:
    """
    Учётные данные AWS.

    Если ключи не указаны, boto3 использует стандартную цепочку
    (env, ~/.aws/credentials, instance profile).
    """
    region: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    @classmethod
    def from_config(cls, aws_config) -> "AwsCredentials":
        creds = cls(
            region=aws_config.region,
            access_key_id=aws_config.access_key_id,
            secret_access_key=aws_config.secret_access_key,
        )
        if bool(creds.access_key_id) != bool(creds.secret_access_key):
            raise ConfigError(
                "aws.access_key_id и aws.secret_access_key указываются вместе",
                key="aws.access_key_id",
            )
        if not creds.access_key_id:
            logger.debug("AWS ключи не указаны, используется стандартная цепочка boto3")
        return creds

    def __repr__(self) -> str:
        return f"AwsCredentials(region={self.region!r}, access_key_id={self.access_key_id!r})"
