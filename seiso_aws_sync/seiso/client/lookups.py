"""
Mixin для справочников Seiso: rotation statuses, load balancers,
environments, data centers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...core.parallel import gather
from .base import record_link

logger = logging.getLogger(__name__)


@dataclass
class DomainCache:
    """Справочники environments / dataCenters по key."""
    environments: Dict[str, Any] = field(default_factory=dict)
    data_centers: Dict[str, Any] = field(default_factory=dict)


class LookupsMixin:
    """Методы чтения справочников."""

    def get_rotation_statuses(self) -> List[Dict[str, Any]]:
        """Все rotation statuses (enabled, disabled, ...)."""
        statuses = list(self.iter_all("rotationStatuses"))
        logger.debug(f"Получено rotation statuses: {len(statuses)}")
        return statuses

    def get_load_balancers(self) -> List[Dict[str, Any]]:
        return list(self.iter_all("loadBalancers"))

    def get_nodes(self) -> List[Dict[str, Any]]:
        return list(self.iter_all("nodes"))

    def get_environments(self) -> List[Dict[str, Any]]:
        return list(self.iter_all("environments"))

    def get_data_centers(self) -> List[Dict[str, Any]]:
        return list(self.iter_all("dataCenters"))

    # ==================== КЭШ СПРАВОЧНИКОВ ====================

    def domain_cache(self) -> DomainCache:
        """
        Справочники environments и dataCenters.

        Загружаются один раз при первом обращении (параллельно).
        Записи из конфигурации клиента перекрывают загруженные.
        """
        with self._domain_lock:
            if self._domain_cache is None:
                environments, data_centers = gather(
                    {
                        "environments": self.get_environments,
                        "data_centers": self.get_data_centers,
                    },
                    max_workers=self.max_workers,
                )
                cache = DomainCache(
                    environments={e["key"]: e for e in environments if e.get("key")},
                    data_centers={d["key"]: d for d in data_centers if d.get("key")},
                )
                cache.environments.update(self._configured_environments)
                cache.data_centers.update(self._configured_data_centers)
                logger.info(
                    f"Найдено environments: {len(cache.environments)}, "
                    f"data centers: {len(cache.data_centers)}"
                )
                self._domain_cache = cache
            return self._domain_cache

    def environment_link(self, key: Optional[str]) -> Optional[str]:
        """Self-ссылка environment по key (None если нет такого)."""
        if not key:
            return None
        record = self.domain_cache().environments.get(key)
        # В конфигурации запись можно задать просто ссылкой
        if isinstance(record, str):
            return record
        return record_link(record) if record else None

    def data_center_link(self, key: Optional[str]) -> Optional[str]:
        """Self-ссылка data center по key (None если нет такого)."""
        if not key:
            return None
        record = self.domain_cache().data_centers.get(key)
        # В конфигурации запись можно задать просто ссылкой
        if isinstance(record, str):
            return record
        return record_link(record) if record else None
