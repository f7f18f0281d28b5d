"""
Команда remove-node.
"""

import logging

from ...core.exceptions import SeisoSyncError, format_error_for_log
from ...seiso import SeisoClient

logger = logging.getLogger(__name__)


def cmd_remove_node(args, config) -> int:
    """Удаляет node (и опционально machine) из Seiso."""
    client = SeisoClient.from_config(config.seiso)
    try:
        removed = client.remove_node(args.name, remove_machine=args.remove_machine)
    except SeisoSyncError as e:
        print(f"✗ {format_error_for_log(e)}")
        return 1

    if removed:
        suffix = " вместе с machine" if args.remove_machine else ""
        print(f"✓ Node {args.name} удалён{suffix}")
    else:
        print(f"Node {args.name} не найден")
    return 0
