"""
Mixin для работы с IP-адресами node и IP address roles.
"""

import logging
from typing import Any, Dict, List

from ...core.constants import DEFAULT_IP_ADDRESS_ROLE, HTTP_CONFLICT
from ...core.exceptions import ConsistencyError
from ...core.models import IpSyncResult
from ...core.parallel import first_error, settle_all
from ..diff import diff_ip_addresses
from .base import as_list, record_id, record_link

logger = logging.getLogger(__name__)


class IpAddressesMixin:
    """Методы для работы с nodeIpAddresses и ipAddressRoles."""

    def get_node_ip_addresses(self, node: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Текущие IP-адреса node."""
        return as_list(self.request(
            f"nodes/{record_id(node)}/ipAddresses",
            embedded="nodeIpAddresses",
        ))

    def create_node_ip_address(
        self,
        node: Dict[str, Any],
        role: Dict[str, Any],
        ip_address: str,
    ) -> Any:
        """Привязывает IP к node (conflict = уже привязан)."""
        logger.info(f"Создание IP {ip_address} для node {node.get('name')}")
        return self.request(
            "nodeIpAddresses",
            {
                "node": record_link(node),
                "ipAddressRole": record_link(role),
                "ipAddress": ip_address,
            },
            method="POST",
            ignored_status_codes=(HTTP_CONFLICT,),
        )

    def delete_node_ip_address(self, ip_address: Dict[str, Any]) -> Any:
        """Удаляет привязку IP (conflict игнорируется)."""
        logger.info(f"Удаление IP {ip_address.get('ipAddress')}")
        return self.request(
            f"nodeIpAddresses/{record_id(ip_address)}",
            method="DELETE",
            ignored_status_codes=(HTTP_CONFLICT,),
        )

    def get_default_ip_address_role(self, service_instance_id: str) -> Dict[str, Any]:
        """
        Default IpAddressRole service instance.

        Кэшируется по service instance: запрос выполняется один раз.

        Raises:
            ConsistencyError: У service instance нет роли "default"
        """
        with self._roles_lock:
            role = self._default_roles.get(service_instance_id)
            if role is not None:
                return role

            roles = as_list(self.request(
                f"serviceInstances/{service_instance_id}/ipAddressRoles",
                embedded="ipAddressRoles",
            ))
            for candidate in roles:
                if candidate.get("name") == DEFAULT_IP_ADDRESS_ROLE:
                    self._default_roles[service_instance_id] = candidate
                    return candidate

        raise ConsistencyError(
            "Не найдена default IP address role",
            resource="ipAddressRoles",
            key=service_instance_id,
            matches=0,
        )

    def sync_node_ip_addresses(
        self,
        service_instance_id: str,
        node: Dict[str, Any],
        ip_addresses: List[str],
    ) -> IpSyncResult:
        """
        Приводит IP-адреса node к набору ip_addresses.

        Лишние удаляются, недостающие создаются с default ролью,
        совпадающие не трогаются. Удаление и создание идут параллельно;
        все ветки доходят до конца, после чего первая ошибка пробрасывается.

        Args:
            service_instance_id: ID service instance node (для default роли)
            node: Запись node в Seiso
            ip_addresses: Желаемый набор IP (полная замена)

        Returns:
            IpSyncResult: Что создано/удалено/без изменений
        """
        existing = self.get_node_ip_addresses(node)
        diff = diff_ip_addresses(existing, ip_addresses)

        result = IpSyncResult(unchanged=list(diff.unchanged))
        if not diff.has_changes:
            logger.debug(f"IP node {node.get('name')} без изменений")
            return result

        labels = []
        calls = []
        for record in diff.to_delete:
            labels.append(("delete", record.get("ipAddress")))
            calls.append(lambda record=record: self.delete_node_ip_address(record))
        for address in diff.to_create:
            labels.append(("create", address))
            calls.append(lambda address=address: self.create_node_ip_address(
                node,
                self.get_default_ip_address_role(service_instance_id),
                address,
            ))

        outcomes = settle_all(calls, max_workers=self.max_workers)
        for (action, address), outcome in zip(labels, outcomes):
            if not outcome.ok:
                result.failed.append(address)
            elif action == "create":
                result.created.append(address)
            else:
                result.deleted.append(address)

        logger.info(f"IP node {node.get('name')}: {result.summary()}")

        error = first_error(outcomes)
        if error is not None:
            raise error
        return result
