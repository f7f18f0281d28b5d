"""
Mixin для работы с services и service instances.
"""

import logging
from functools import partial
from typing import Any, Dict, List, Optional

from ...core.constants import DEFAULT_IP_ADDRESS_ROLE, HTTP_CONFLICT, HTTP_NOT_FOUND, get_protocol_from_port
from ...core.models import NodeRecord
from ...core.parallel import gather
from ..retry import create_or_fetch
from .base import record_link

logger = logging.getLogger(__name__)


def service_instance_key(service_key: str, environment_type: Optional[str]) -> str:
    """Natural key service instance: service-environmentType."""
    return f"{service_key}-{environment_type}"


class ServicesMixin:
    """Методы для работы с services и service instances."""

    # ==================== SERVICES ====================

    def get_service(self, key: str) -> Optional[Dict[str, Any]]:
        """Service по key (None если нет)."""
        return self.request(
            "services/search/findByKey",
            params={"key": key},
            ignored_status_codes=(HTTP_NOT_FOUND,),
        )

    def create_service(self, key: str, name: Optional[str] = None) -> Dict[str, Any]:
        """Создаёт service; при conflict возвращает существующий."""
        logger.info(f"Создание service {key}")
        return create_or_fetch(
            create=lambda: self.request(
                "services",
                {"key": key, "name": name or key},
                method="POST",
            ),
            fetch=lambda: self.get_service(key),
            resource="services",
            key=key,
        )

    def find_or_create_service(self, key: str) -> Dict[str, Any]:
        service = self.get_service(key)
        if service is None:
            logger.info(f"Service {key} не найден, создаём")
            service = self.create_service(key)
        return service

    # ==================== SERVICE INSTANCES ====================

    def get_service_instance(
        self,
        service_key: str,
        environment_type: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        """Service instance по ключу service-environmentType (None если нет)."""
        return self.request(
            "serviceInstances/search/findByKey",
            params={"key": service_instance_key(service_key, environment_type)},
            ignored_status_codes=(HTTP_NOT_FOUND,),
        )

    def create_service_instance(
        self,
        service_key: str,
        environment_type: Optional[str],
        service_link: str,
        ports: List[int],
        environment_link: Optional[str] = None,
        data_center_link: Optional[str] = None,
        load_balanced: bool = True,
        load_balancer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Создаёт service instance вместе с портами и default IP role.

        Порты и роль создаются параллельно; conflict на них означает
        что запись уже есть. Если хотя бы одна ветка упала, ошибка
        пробрасывается после завершения остальных.

        Returns:
            dict: Запись service instance
        """
        key = service_instance_key(service_key, environment_type)
        payload = {
            "key": key,
            "service": service_link,
            "environment": environment_link,
            "dataCenter": data_center_link,
            "loadBalanced": load_balanced,
            "loadBalancer": load_balancer,
        }

        logger.info(f"Создание service instance {key}")
        service_instance = create_or_fetch(
            create=lambda: self.request("serviceInstances", payload, method="POST"),
            fetch=lambda: self.get_service_instance(service_key, environment_type),
            resource="serviceInstances",
            key=key,
        )

        link = record_link(service_instance)
        work = [partial(self._create_service_instance_port, link, port) for port in ports]
        work.append(partial(self._create_default_ip_address_role, link))
        gather(work, max_workers=self.max_workers)

        logger.info(f"Service instance {key}: портов {len(ports)}, default role создана")
        return service_instance

    def find_or_create_service_instance(self, node: NodeRecord, service_link: str) -> Dict[str, Any]:
        """Находит service instance node или создаёт его."""
        service_instance = self.get_service_instance(node.service, node.environment_type)
        if service_instance is not None:
            return service_instance

        logger.info(
            f"Service instance для {node.service}, environment type {node.environment_type} "
            "не найден, создаём"
        )
        return self.create_service_instance(
            service_key=node.service,
            environment_type=node.environment_type,
            service_link=service_link,
            ports=node.ports,
            environment_link=self.environment_link(node.environment),
            data_center_link=self.data_center_link(node.data_center),
            load_balanced=node.load_balanced,
            load_balancer=node.load_balancer,
        )

    def _create_service_instance_port(self, service_instance_link: str, port: int) -> Any:
        return self.request(
            "serviceInstancePorts",
            {
                "serviceInstance": service_instance_link,
                "number": port,
                "protocol": get_protocol_from_port(port),
            },
            method="POST",
            ignored_status_codes=(HTTP_CONFLICT,),
        )

    def _create_default_ip_address_role(self, service_instance_link: str) -> Any:
        return self.request(
            "ipAddressRoles",
            {
                "name": DEFAULT_IP_ADDRESS_ROLE,
                "description": "Default role",
                "serviceInstance": service_instance_link,
            },
            method="POST",
            ignored_status_codes=(HTTP_CONFLICT,),
        )
