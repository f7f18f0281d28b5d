"""
Главный класс Seiso клиента.

Объединяет все mixins в единый класс SeisoClient.
"""

import logging

from ...core.credentials import SeisoCredentials
from .base import SeisoClientBase
from .ip_addresses import IpAddressesMixin
from .lookups import LookupsMixin
from .machines import MachinesMixin
from .nodes import NodesMixin
from .services import ServicesMixin

logger = logging.getLogger(__name__)


class SeisoClient(
    NodesMixin,
    ServicesMixin,
    MachinesMixin,
    IpAddressesMixin,
    LookupsMixin,
    SeisoClientBase,
):
    """
    Клиент Seiso API.

    Объединяет функциональность:
    - SeisoClientBase: подключение, запросы, пагинация
    - NodesMixin: upsert/поиск/удаление nodes, rotation status
    - ServicesMixin: services, service instances, порты, default role
    - MachinesMixin: machines
    - IpAddressesMixin: синхронизация IP-адресов node
    - LookupsMixin: rotation statuses, load balancers, environments, data centers

    Example:
        client = SeisoClient(url="https://seiso.example.com/api", username="u", password="p")
        node = client.upsert_node(node_record)
    """

    @classmethod
    def from_config(cls, seiso_config, session=None) -> "SeisoClient":
        """Создаёт клиента из секции seiso AppConfig."""
        credentials = SeisoCredentials.from_config(seiso_config)
        return cls(
            url=seiso_config.url,
            username=credentials.username,
            password=credentials.password,
            verify_ssl=seiso_config.verify_ssl,
            timeout=seiso_config.timeout,
            page_size=seiso_config.page_size,
            max_workers=seiso_config.max_workers,
            environments=seiso_config.environments,
            data_centers=seiso_config.data_centers,
            session=session,
        )
