"""
boto3 клиенты AWS и классификация ошибок AWS.

Клиенты создаются из явной boto3 Session (region и ключи передаются
параметрами), глобальная конфигурация boto3 не меняется.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.client import BaseClient
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from ..core.constants import AWS_AUTH_ERROR_CODES
from ..core.credentials import AwsCredentials
from ..core.exceptions import FatalAuthError, SeisoSyncError, TransientError

logger = logging.getLogger(__name__)


@dataclass
class AwsClients:
    """
    Набор boto3 клиентов, нужных Listener.

    Attributes:
        sqs: Очередь событий
        ec2: Детали instances
        elb: Classic load balancers
        autoscaling: Членство в autoscaling groups
        region: Регион
    """
    sqs: BaseClient
    ec2: BaseClient
    elb: BaseClient
    autoscaling: BaseClient
    region: str = ""

    @classmethod
    def create(
        cls,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ) -> "AwsClients":
        """
        Создаёт клиенты из отдельной boto3 Session.

        Без ключей boto3 использует стандартную цепочку credentials.
        """
        session = boto3.session.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )
        logger.info(f"AWS клиенты созданы, регион {region}")
        return cls(
            sqs=session.client("sqs"),
            ec2=session.client("ec2"),
            elb=session.client("elb"),
            autoscaling=session.client("autoscaling"),
            region=region,
        )

    @classmethod
    def from_credentials(cls, credentials: AwsCredentials) -> "AwsClients":
        return cls.create(
            region=credentials.region,
            access_key_id=credentials.access_key_id,
            secret_access_key=credentials.secret_access_key,
        )


def aws_error_code(error: BaseException) -> str:
    """Код ошибки из ClientError (пустая строка для прочих)."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


def classify_aws_error(error: BaseException, service: str) -> SeisoSyncError:
    """
    Переводит ошибку boto3 в исключение Seiso AWS Sync.

    Ошибки credentials и авторизации -> FatalAuthError,
    остальные -> TransientError.

    Args:
        error: Исключение boto3/botocore
        service: Имя сервиса AWS (sqs, ec2, ...)

    Returns:
        SeisoSyncError: Исключение для raise
    """
    if isinstance(error, SeisoSyncError):
        return error

    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return FatalAuthError(f"AWS credentials не найдены: {error}", service=service)

    code = aws_error_code(error)
    if code in AWS_AUTH_ERROR_CODES:
        return FatalAuthError(f"AWS {service}: {code}: {error}", service=service)

    if isinstance(error, (ClientError, BotoCoreError)):
        return TransientError(f"AWS {service}: {error}", service=service)

    return TransientError(f"AWS {service}: {error.__class__.__name__}: {error}", service=service)


def call_aws(service: str, method: Any, **kwargs: Any) -> Any:
    """
    Вызывает метод boto3 клиента с классификацией ошибок.

    Raises:
        FatalAuthError: Ошибка credentials/авторизации
        TransientError: Прочие ошибки AWS
    """
    try:
        return method(**kwargs)
    except (ClientError, BotoCoreError) as e:
        raise classify_aws_error(e, service) from e
