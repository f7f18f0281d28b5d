"""
Модели данных Seiso AWS Sync.

Содержит:
- OrchestratorState / ListenerState: состояния жизненного цикла
- NodeRecord: каноническая запись node для Seiso
- QueueMessage: сообщение из SQS
- RotationBatch: payload событий instance-rotate-in/out
- RotationResult / RotationBatchResult: результат обновления rotation status
- IpSyncResult: результат синхронизации IP-адресов node
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import AWS_INSTANCE_ID_TAG


class OrchestratorState(str, Enum):
    """Состояние оркестратора."""
    STOPPED = "Stopped"
    STARTING = "Starting"
    STARTED = "Started"
    STOPPING = "Stopping"
    UNKNOWN = "Unknown"


class ListenerState(str, Enum):
    """Состояние Listener."""
    STOPPED = "Stopped"
    STARTED = "Started"
    STOPPING = "Stopping"


@dataclass
class NodeRecord:
    """
    Каноническая запись node для синхронизации с Seiso.

    Заполняется EventMapper из EC2 instance и дополняется
    custom transformers (service, environment, ports, ...).

    Attributes:
        name: Имя node (= AWS instance ID)
        machine_name: FQDN машины
        hostname: Первый сегмент FQDN
        domain: Остаток FQDN
        rotation_hint: True если instance помечен как down
        tags: Теги node; "AWS Instance ID" является natural key
        service: Ключ сервиса
        environment: Ключ environment (например aws-test)
        environment_type: Категория environment (например test)
        data_center: Ключ data center
        owner: Владелец
        load_balanced: Node за балансировщиком
        load_balancer: Имя балансировщика
        os: Операционная система машины
        platform: Платформа машины
        ip_address: Основной IP машины
        ip_addresses: Желаемый набор IP node (если пусто, то [ip_address])
        ports: Порты service instance
    """
    name: str
    machine_name: str = ""
    hostname: str = ""
    domain: str = ""
    rotation_hint: bool = False
    tags: Dict[str, str] = field(default_factory=dict)
    service: Optional[str] = None
    environment: Optional[str] = None
    environment_type: Optional[str] = None
    data_center: Optional[str] = None
    owner: Optional[str] = None
    load_balanced: bool = True
    load_balancer: Optional[str] = None
    os: Optional[str] = None
    platform: Optional[str] = None
    ip_address: Optional[str] = None
    ip_addresses: List[str] = field(default_factory=list)
    ports: List[int] = field(default_factory=list)

    @property
    def aws_instance_id(self) -> Optional[str]:
        """Значение тега AWS Instance ID."""
        return self.tags.get(AWS_INSTANCE_ID_TAG)

    @property
    def desired_ip_addresses(self) -> List[str]:
        """Желаемый набор IP: ip_addresses либо [ip_address]."""
        if self.ip_addresses:
            return list(self.ip_addresses)
        return [self.ip_address] if self.ip_address else []

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация в словарь."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeRecord":
        """Создаёт запись из словаря (неизвестные ключи игнорируются)."""
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class QueueMessage:
    """
    Сообщение из очереди.

    Attributes:
        body: Тело сообщения (JSON строка)
        deletion_token: Токен для подтверждения (ReceiptHandle)
        message_id: ID сообщения (только для логов)
    """
    body: str
    deletion_token: str
    message_id: str = ""

    @classmethod
    def from_sqs(cls, message: Dict[str, Any]) -> "QueueMessage":
        """Создаёт из ответа SQS receive_message."""
        return cls(
            body=message.get("Body", ""),
            deletion_token=message.get("ReceiptHandle", ""),
            message_id=message.get("MessageId", ""),
        )


@dataclass
class RotationBatch:
    """
    Payload событий instance-rotate-in / instance-rotate-out.

    Attributes:
        deletion_token: Токен исходного сообщения
        instances: Детали EC2 instances (describe_instances + region)
        load_balancer: Имя балансировщика из события
    """
    deletion_token: str
    instances: List[Dict[str, Any]] = field(default_factory=list)
    load_balancer: str = ""

    @property
    def instance_ids(self) -> List[str]:
        return [i.get("InstanceId", "") for i in self.instances]


@dataclass
class RotationResult:
    """Результат обновления rotation status одного instance."""
    instance_id: str
    success: bool
    node: Optional[str] = None
    error: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"instance_id": self.instance_id, "success": self.success}
        if self.node:
            result["node"] = self.node
        if self.error is not None:
            result["error"] = str(self.error)
            result["error_type"] = self.error.__class__.__name__
        return result


@dataclass
class RotationBatchResult:
    """
    Результат обработки RotationBatch.

    Attributes:
        status_key: enabled / disabled
        results: Результаты по каждому instance
        acknowledged: Сообщение подтверждено (удалено из очереди)
    """
    status_key: str
    results: List[RotationResult] = field(default_factory=list)
    acknowledged: bool = False

    @property
    def succeeded(self) -> List[RotationResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[RotationResult]:
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class IpSyncResult:
    """Статистика синхронизации IP-адресов node."""
    created: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"создано={len(self.created)}, удалено={len(self.deleted)}, "
            f"без изменений={len(self.unchanged)}, ошибок={len(self.failed)}"
        )
