"""
Mixin для работы с machines.
"""

import logging
from typing import Any, Dict, List, Optional

from ...core.constants import HTTP_NOT_FOUND
from ...core.exceptions import ConsistencyError
from ..retry import create_or_fetch
from .base import as_list, record_id

logger = logging.getLogger(__name__)


class MachinesMixin:
    """Методы для работы с machines."""

    def get_machines_by_name(self, name: str) -> List[Dict[str, Any]]:
        """Machines с именем name (обычно 0 или 1)."""
        return as_list(self.request(
            "machines/search/findByName",
            params={"name": name},
            ignored_status_codes=(HTTP_NOT_FOUND,),
        ))

    def get_node_machine(self, node: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Machine, к которой привязан node (None если нет)."""
        return self.request(
            f"nodes/{record_id(node)}/machine",
            ignored_status_codes=(HTTP_NOT_FOUND,),
        )

    def create_machine(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Создаёт machine; при conflict возвращает существующую по имени."""
        name = payload.get("name")
        return create_or_fetch(
            create=lambda: self.request("machines", payload, method="POST"),
            fetch=lambda: self.get_machines_by_name(name),
            resource="machines",
            key=name,
        )

    def update_machine(self, machine_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Обновляет machine (PUT); при conflict возвращает существующую по имени."""
        name = payload.get("name")
        return create_or_fetch(
            create=lambda: self.request(f"machines/{machine_id}", payload, method="PUT"),
            fetch=lambda: self.get_machines_by_name(name),
            resource="machines",
            key=name,
            operation="update",
        )

    def upsert_machine(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Создаёт machine или обновляет существующую с тем же именем.

        Raises:
            ConsistencyError: В Seiso несколько machines с таким именем
        """
        name = payload.get("name")
        matches = self.get_machines_by_name(name)
        if len(matches) > 1:
            raise ConsistencyError(
                "Найдено несколько machines с одним именем",
                resource="machines",
                key=name,
                matches=len(matches),
            )

        if matches:
            machine_id = record_id(matches[0])
            logger.info(f"Machine {name} найдена (id {machine_id}), обновляем")
            updated = self.update_machine(machine_id, payload)
            # PUT может вернуть пустой ответ
            return updated or matches[0]

        logger.info(f"Machine {name} не найдена, создаём")
        return self.create_machine(payload)
