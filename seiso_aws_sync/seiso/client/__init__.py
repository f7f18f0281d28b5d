"""
Клиент Seiso API.

Разбит на модули по типам ресурсов:
- base.py: подключение, запросы, пагинация
- nodes.py: nodes
- services.py: services и service instances
- machines.py: machines
- ip_addresses.py: IP-адреса node
- lookups.py: справочники
- main.py: SeisoClient (объединяет все mixins)
"""

from .base import Page, SeisoSession, record_id, record_link
from .main import SeisoClient

__all__ = ["SeisoClient", "SeisoSession", "Page", "record_id", "record_link"]
