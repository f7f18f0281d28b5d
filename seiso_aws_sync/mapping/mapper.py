"""
EventMapper: EC2 instance -> NodeRecord.

Проверяет структуру деталей instance (describe_instances) и строит
каноническую запись node. Теги AWS можно переносить в атрибуты
NodeRecord через tag_mappings:

    mapper:
      tag_mappings:
        - tag_name: Service
          property_name: service
        - tag_name: Ports
          property_name: ports      # "80,443" -> [80, 443]
"""

import logging
from dataclasses import fields
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.constants import AWS_INSTANCE_ID_TAG
from ..core.exceptions import ConfigError
from ..core.models import NodeRecord

logger = logging.getLogger(__name__)

# Атрибуты, которые нельзя перезаписать тегом
PROTECTED_PROPERTIES = {"name", "tags"}

NODE_PROPERTIES = {f.name for f in fields(NodeRecord)} - PROTECTED_PROPERTIES


def _parse_ports(value: str) -> List[int]:
    return [int(p) for p in value.replace(";", ",").split(",") if p.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


# Преобразование строки тега для нестроковых атрибутов
PROPERTY_PARSERS = {
    "ports": _parse_ports,
    "ip_addresses": lambda v: [ip.strip() for ip in v.split(",") if ip.strip()],
    "load_balanced": _parse_bool,
    "rotation_hint": _parse_bool,
}


class EventMapper:
    """
    Трансляция деталей EC2 instance в NodeRecord.

    Не хранит состояния между вызовами.
    """

    def __init__(self, tag_mappings: Optional[Iterable[Any]] = None):
        """
        Args:
            tag_mappings: Список TagMapping или dict {tag_name, property_name}

        Raises:
            ConfigError: property_name не является атрибутом NodeRecord
        """
        self.tag_mappings: List[Tuple[str, str]] = []
        for mapping in tag_mappings or []:
            if isinstance(mapping, dict):
                tag_name, property_name = mapping.get("tag_name"), mapping.get("property_name")
            else:
                tag_name, property_name = mapping.tag_name, mapping.property_name

            if property_name not in NODE_PROPERTIES:
                raise ConfigError(
                    f"Неизвестный атрибут node в tag_mappings: {property_name}",
                    key="mapper.tag_mappings",
                )
            self.tag_mappings.append((tag_name, property_name))

    def validate(self, instance: Optional[Dict[str, Any]]) -> List[str]:
        """
        Проверяет детали instance.

        Returns:
            List[str]: Ошибки валидации (пустой список = валиден)
        """
        if not instance:
            return ["Instance details not present"]

        errors = []
        instance_id = instance.get("InstanceId")
        if not isinstance(instance_id, str) or not instance_id:
            errors.append("Instance ID not present")

        fqdn = instance.get("PrivateDnsName")
        if not fqdn:
            errors.append("Instance not named")
        elif len(fqdn.split(".")) < 2:
            errors.append("Instance DNS name not an FQDN")

        return errors

    def translate(self, instance: Dict[str, Any]) -> NodeRecord:
        """
        Строит NodeRecord из деталей instance.

        Вызывать после validate().
        """
        instance_id = instance["InstanceId"]
        machine_name = instance["PrivateDnsName"]
        hostname, _, domain = machine_name.partition(".")

        node = NodeRecord(
            name=instance_id,
            machine_name=machine_name,
            hostname=hostname,
            domain=domain,
            rotation_hint=instance.get("status") == "down",
            ip_address=instance.get("PrivateIpAddress"),
            platform=instance.get("Platform"),
            tags={AWS_INSTANCE_ID_TAG: instance_id},
        )
        self._apply_tag_mappings(node, instance)
        return node

    def _apply_tag_mappings(self, node: NodeRecord, instance: Dict[str, Any]) -> None:
        if not self.tag_mappings:
            return

        aws_tags = {t.get("Key"): t.get("Value", "") for t in instance.get("Tags", [])}
        for tag_name, property_name in self.tag_mappings:
            if tag_name not in aws_tags:
                continue
            raw = aws_tags[tag_name]
            parser = PROPERTY_PARSERS.get(property_name)
            try:
                value = parser(raw) if parser else raw
            except ValueError:
                logger.warning(f"Тег {tag_name}={raw!r} не подходит для {property_name}, пропускаем")
                continue
            setattr(node, property_name, value)
