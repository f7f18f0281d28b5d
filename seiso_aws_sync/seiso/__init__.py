"""
Модуль интеграции с Seiso.

Пример использования:
    from seiso_aws_sync.seiso import SeisoClient

    client = SeisoClient(url="https://seiso.example.com/api", username="u", password="p")
    client.connect()
    node = client.upsert_node(node_record)
"""

from .client import SeisoClient
from .diff import IpAddressDiff, diff_ip_addresses
from .retry import create_or_fetch, single_match

__all__ = [
    "SeisoClient",
    "IpAddressDiff",
    "diff_ip_addresses",
    "create_or_fetch",
    "single_match",
]
