"""
Команда check.

Проверка конфигурации и подключения к Seiso.
"""

import logging

from ...core.exceptions import SeisoSyncError, format_error_for_log
from ...seiso import SeisoClient

logger = logging.getLogger(__name__)


def cmd_check(args, config) -> int:
    """
    Подключается к Seiso и выводит rotation statuses.

    Returns:
        int: 0 если проверка прошла
    """
    print("✓ Конфигурация валидна")

    try:
        client = SeisoClient.from_config(config.seiso)
        client.connect()
        statuses = client.get_rotation_statuses()
    except SeisoSyncError as e:
        print(f"✗ Seiso: {format_error_for_log(e)}")
        return 1

    print(f"✓ Seiso доступен: {client.url}")
    print(f"\nRotation statuses ({len(statuses)}):")
    for status in statuses:
        print(f"  {status.get('key')}: {status.get('name', '')}")

    if not config.listener.queue_url:
        print("\n⚠ listener.queue_url не указан")
    return 0
