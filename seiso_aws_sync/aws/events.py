"""
Разбор и классификация сообщений из очереди.

Сообщение: событие EventBridge (CloudTrail) о регистрации instances
в ELB, возможно обёрнутое в SNS конверт (поле Message содержит
внутренний JSON строкой).

Пример события:
    {
        "detail-type": "AWS API Call via CloudTrail",
        "region": "us-west-2",
        "detail": {
            "eventName": "RegisterInstancesWithLoadBalancer",
            "requestParameters": {
                "loadBalancerName": "web-lb",
                "instances": [{"instanceId": "i-0abc"}]
            }
        }
    }
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.constants import (
    EVENT_DEREGISTER_INSTANCES,
    EVENT_REGISTER_INSTANCES,
    LB_REGISTRATION_DETAIL_TYPE,
)
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Классификация сообщения."""
    ROTATE_IN = "rotate-in"
    ROTATE_OUT = "rotate-out"
    IGNORED = "ignored"


EVENT_KINDS = {
    EVENT_REGISTER_INSTANCES: EventKind.ROTATE_IN,
    EVENT_DEREGISTER_INSTANCES: EventKind.ROTATE_OUT,
}


@dataclass
class RegistrationEvent:
    """Провалидированное событие регистрации/дерегистрации."""
    event_name: str
    load_balancer: str
    instance_ids: List[str] = field(default_factory=list)
    region: str = ""

    @property
    def kind(self) -> EventKind:
        return EVENT_KINDS.get(self.event_name, EventKind.IGNORED)


def parse_envelope(body: str) -> Optional[Dict[str, Any]]:
    """
    Разбирает тело сообщения, снимая SNS конверт если он есть.

    Returns:
        dict или None если тело не JSON объект
    """
    try:
        event = json.loads(body)
    except (TypeError, ValueError):
        return None

    if isinstance(event, dict) and isinstance(event.get("Message"), str):
        try:
            event = json.loads(event["Message"])
        except ValueError:
            return None

    return event if isinstance(event, dict) else None


def classify_event(event: Optional[Dict[str, Any]]) -> EventKind:
    """Классифицирует событие по паре (detail-type, eventName)."""
    if not event or event.get("detail-type") != LB_REGISTRATION_DETAIL_TYPE:
        return EventKind.IGNORED
    detail = event.get("detail")
    if not isinstance(detail, dict):
        return EventKind.IGNORED
    return EVENT_KINDS.get(detail.get("eventName"), EventKind.IGNORED)


def validate_registration_event(event: Dict[str, Any]) -> RegistrationEvent:
    """
    Проверяет структуру события регистрации.

    Нужны: хотя бы один instanceId, имя балансировщика и eventName.

    Raises:
        ValidationError: Событие не содержит нужных данных
    """
    detail = event.get("detail") or {}
    params = detail.get("requestParameters") or {}
    instances = params.get("instances") or []

    instance_ids = [
        i["instanceId"] for i in instances
        if isinstance(i, dict) and i.get("instanceId")
    ]

    errors = []
    if not instance_ids:
        errors.append("No instance IDs in requestParameters.instances")
    if not params.get("loadBalancerName"):
        errors.append("requestParameters.loadBalancerName not present")
    if not detail.get("eventName"):
        errors.append("detail.eventName not present")

    if errors:
        raise ValidationError("LB registration event does not contain valid data", errors=errors)

    return RegistrationEvent(
        event_name=detail["eventName"],
        load_balancer=params["loadBalancerName"],
        instance_ids=instance_ids,
        region=event.get("region", ""),
    )
