"""
Mixin для работы с nodes: upsert, поиск, удаление, rotation status.
"""

import logging
from typing import Any, Dict, List, Optional

from ...core.constants import (
    AWS_INSTANCE_ID_TAG,
    DEFAULT_NODE_VERSION,
    HTTP_NOT_FOUND,
)
from ...core.exceptions import ConflictError, ConsistencyError, ValidationError
from ...core.models import NodeRecord
from ..retry import create_or_fetch
from .base import as_list, record_id, record_link

logger = logging.getLogger(__name__)


def validate_node(node: NodeRecord) -> List[str]:
    """Проверка NodeRecord перед upsert. Пустой список = валиден."""
    errors = []
    if not node.aws_instance_id:
        errors.append(f"Required tag '{AWS_INSTANCE_ID_TAG}' not present")
    if not node.ports:
        errors.append("At least one port must be specified")
    if not node.service:
        errors.append("Service key not present")
    return errors


class NodesMixin:
    """Методы для работы с nodes."""

    # ==================== ПОИСК ====================

    def find_nodes(self, name: str, aws_instance_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Nodes по имени.

        Если у записей есть tags, записи с другим AWS Instance ID
        отбрасываются.

        Args:
            name: Имя node
            aws_instance_id: Значение тега AWS Instance ID

        Returns:
            List[dict]: Найденные nodes (может быть пустым)
        """
        nodes = as_list(self.request(
            "nodes/search/findByName",
            params={"name": name},
            ignored_status_codes=(HTTP_NOT_FOUND,),
        ))
        if aws_instance_id:
            nodes = [n for n in nodes if _instance_tag_matches(n, aws_instance_id)]
        return nodes

    def find_node(self, name: str, aws_instance_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Единственный node по имени и AWS Instance ID.

        Raises:
            ConsistencyError: Ноль или несколько совпадений
        """
        nodes = self.find_nodes(name, aws_instance_id)
        if len(nodes) != 1:
            message = (
                "Не найден node для instance" if not nodes
                else "Найдено несколько nodes для instance"
            )
            raise ConsistencyError(message, resource="nodes", key=aws_instance_id or name, matches=len(nodes))
        return nodes[0]

    # ==================== UPSERT ====================

    def upsert_node(self, node: NodeRecord) -> Dict[str, Any]:
        """
        Создаёт или обновляет node вместе со связанными записями.

        Порядок: поиск node -> service -> service instance -> machine ->
        create/update node -> синхронизация IP.

        Args:
            node: Каноническая запись node

        Returns:
            dict: Запись node в Seiso

        Raises:
            ValidationError: Node не прошёл проверку (до обращения к API)
            ConsistencyError: Дубликаты или неоднозначный поиск после conflict
        """
        errors = validate_node(node)
        if errors:
            raise ValidationError("One or more validation errors was found", errors=errors)

        matches = self.find_nodes(node.name, node.aws_instance_id)
        if len(matches) > 1:
            logger.warning(f"Несколько nodes для {node.name}, instance {node.aws_instance_id}")
            raise ConsistencyError(
                "Multiple nodes already exist with that AWS instance ID",
                resource="nodes",
                key=node.aws_instance_id,
                matches=len(matches),
            )
        existing = matches[0] if matches else None

        service = self.find_or_create_service(node.service)
        service_instance = self.find_or_create_service_instance(node, record_link(service))

        logger.info(f"Upsert machine {node.machine_name}")
        machine = self.upsert_machine({
            "name": node.machine_name,
            "hostname": node.hostname,
            "domain": node.domain,
            "os": node.os,
            "platform": node.platform,
            "ipAddress": node.ip_address,
            "dataCenter": self.data_center_link(node.data_center),
        })

        if existing is None:
            logger.info(f"Node {node.name} не найден, создаём")
            return self.create_node(node, service_instance, record_link(machine))

        logger.info(f"Node {node.name} найден, обновляем")
        return self.update_node(existing, node, service_instance, record_link(machine))

    def create_node(
        self,
        node: NodeRecord,
        service_instance: Dict[str, Any],
        machine_link: str,
    ) -> Dict[str, Any]:
        """Создаёт node (conflict -> существующий) и синхронизирует IP."""
        payload = self._node_payload(node, service_instance, machine_link)
        record = create_or_fetch(
            create=lambda: self.request("nodes", payload, method="POST"),
            fetch=lambda: self.find_nodes(node.name, node.aws_instance_id),
            resource="nodes",
            key=node.name,
        )
        self.sync_node_ip_addresses(record_id(service_instance), record, node.desired_ip_addresses)
        return record

    def update_node(
        self,
        existing: Dict[str, Any],
        node: NodeRecord,
        service_instance: Dict[str, Any],
        machine_link: str,
    ) -> Dict[str, Any]:
        """Обновляет node (PUT; conflict -> перечитать) и синхронизирует IP."""
        payload = self._node_payload(node, service_instance, machine_link)
        record = create_or_fetch(
            create=lambda: self.request(f"nodes/{record_id(existing)}", payload, method="PUT"),
            fetch=lambda: self.find_nodes(node.name, node.aws_instance_id),
            resource="nodes",
            key=node.name,
            operation="update",
        )
        # PUT может вернуть пустой ответ
        record = record or existing
        self.sync_node_ip_addresses(record_id(service_instance), record, node.desired_ip_addresses)
        return record

    @staticmethod
    def _node_payload(
        node: NodeRecord,
        service_instance: Dict[str, Any],
        machine_link: str,
    ) -> Dict[str, Any]:
        return {
            "name": node.name,
            "version": DEFAULT_NODE_VERSION,
            "serviceInstance": record_link(service_instance),
            "machine": machine_link,
        }

    # ==================== ROTATION STATUS ====================

    def patch_node_rotation_status(self, node: Dict[str, Any], status_link: str) -> Any:
        """Обновляет aggregateRotationStatus node (PATCH)."""
        logger.debug(f"Node {node.get('name')}: rotation status -> {status_link}")
        return self.request(
            f"nodes/{record_id(node)}",
            {"aggregateRotationStatus": status_link},
            method="PATCH",
        )

    # ==================== УДАЛЕНИЕ ====================

    def remove_node(self, name: str, remove_machine: bool = False) -> bool:
        """
        Удаляет node по имени, опционально вместе с machine.

        Args:
            name: Имя node
            remove_machine: Удалить и machine node

        Returns:
            bool: True если node был найден и удалён

        Raises:
            ConsistencyError: Удаление machine дало conflict, но machine осталась
        """
        node = self.request(
            "nodes/search/findByName",
            params={"name": name},
            ignored_status_codes=(HTTP_NOT_FOUND,),
        )
        if isinstance(node, list):
            if len(node) > 1:
                raise ConsistencyError(
                    "Найдено несколько nodes с одним именем",
                    resource="nodes",
                    key=name,
                    matches=len(node),
                )
            node = node[0] if node else None

        if node is None:
            logger.info(f"Node {name} не найден, удалять нечего")
            return False

        machine = self.get_node_machine(node) if remove_machine else None

        logger.info(f"Удаление node {name}")
        self.request(f"nodes/{record_id(node)}", method="DELETE")

        if machine is not None:
            self._remove_machine(machine)
        return True

    def _remove_machine(self, machine: Dict[str, Any]) -> None:
        machine_id = record_id(machine)
        logger.info(f"Удаление machine {machine.get('name', machine_id)}")
        try:
            self.request(
                f"machines/{machine_id}",
                method="DELETE",
                ignored_status_codes=(HTTP_NOT_FOUND,),
            )
        except ConflictError:
            # Conflict допустим только если machine уже нет
            still_there = self.request(
                f"machines/{machine_id}",
                ignored_status_codes=(HTTP_NOT_FOUND,),
            )
            if still_there is not None:
                raise ConsistencyError(
                    "Machine deletion failed with conflict but machine still exists",
                    resource="machines",
                    key=machine_id,
                    matches=1,
                )


def _instance_tag_matches(node: Dict[str, Any], aws_instance_id: str) -> bool:
    tags = node.get("tags")
    if not isinstance(tags, dict) or AWS_INSTANCE_ID_TAG not in tags:
        return True
    return tags[AWS_INSTANCE_ID_TAG] == aws_instance_id
