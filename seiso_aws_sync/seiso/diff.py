"""
Сравнение IP-адресов node в Seiso с желаемым набором.

Чистая функция без обращений к API: результат говорит что удалить,
что создать и что оставить как есть.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class IpAddressDiff:
    """
    Разница между текущими и желаемыми IP node.

    Attributes:
        to_create: Адреса, которых нет в Seiso
        to_delete: Записи nodeIpAddresses, которых нет в желаемом наборе
        unchanged: Адреса, присутствующие в обоих наборах
    """
    to_create: List[str] = field(default_factory=list)
    to_delete: List[Dict[str, Any]] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_create or self.to_delete)

    def summary(self) -> str:
        return (
            f"создать={len(self.to_create)}, удалить={len(self.to_delete)}, "
            f"без изменений={len(self.unchanged)}"
        )


def diff_ip_addresses(existing: List[Dict[str, Any]], desired: List[str]) -> IpAddressDiff:
    """
    Вычисляет разницу между IP в Seiso и желаемыми IP.

    Args:
        existing: Записи nodeIpAddresses (с полем ipAddress)
        desired: Желаемые адреса; дубликаты схлопываются

    Returns:
        IpAddressDiff: Порядок элементов сохраняется
    """
    wanted = list(dict.fromkeys(ip for ip in desired if ip))
    wanted_set = set(wanted)

    diff = IpAddressDiff()
    confirmed = set()
    for record in existing or []:
        address = record.get("ipAddress")
        if address in wanted_set:
            if address not in confirmed:
                diff.unchanged.append(address)
                confirmed.add(address)
        else:
            diff.to_delete.append(record)

    diff.to_create = [ip for ip in wanted if ip not in confirmed]
    return diff
