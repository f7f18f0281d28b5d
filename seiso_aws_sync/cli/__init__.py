"""
CLI модуль seiso_aws_sync.

Структура:
- commands/: обработчики команд
  - run.py: run
  - check.py: check
  - nodes.py: remove-node

Примеры использования:
    python -m seiso_aws_sync -c config.yaml run
    python -m seiso_aws_sync check
    python -m seiso_aws_sync remove-node i-0abc --remove-machine
"""

import argparse
import logging
from typing import List, Optional

from .commands import cmd_check, cmd_remove_node, cmd_run

logger = logging.getLogger(__name__)


def setup_parser() -> argparse.ArgumentParser:
    """
    Создаёт парсер аргументов командной строки.

    Returns:
        ArgumentParser: Настроенный парсер
    """
    parser = argparse.ArgumentParser(
        prog="seiso_aws_sync",
        description="Синхронизация Seiso с регистрацией EC2 instances в ELB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
  %(prog)s -c config.yaml run
  %(prog)s check
  %(prog)s remove-node i-0abc --remove-machine
        """,
    )

    # Общие аргументы
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Подробный вывод (DEBUG)",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Путь к файлу конфигурации YAML (default: config.yaml)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Логи в формате JSON",
    )

    # Подкоманды
    subparsers = parser.add_subparsers(dest="command", help="Команды")

    subparsers.add_parser("run", help="Запустить pipeline (до Ctrl+C)")
    subparsers.add_parser("check", help="Проверить конфигурацию и подключение к Seiso")

    remove_parser = subparsers.add_parser("remove-node", help="Удалить node из Seiso")
    remove_parser.add_argument("name", help="Имя node (AWS instance ID)")
    remove_parser.add_argument(
        "--remove-machine",
        action="store_true",
        help="Удалить и machine node",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Главная функция CLI.

    Returns:
        int: Код выхода
    """
    from ..config import load_config
    from ..core.exceptions import ConfigError
    from ..core.logging import LogConfig, setup_logging, setup_logging_from_config

    parser = setup_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"✗ {e}")
        return 2

    # Приоритет: -v / --json-logs > config.yaml
    log_config = LogConfig.from_dict(config.logging.model_dump())
    if args.verbose:
        log_config.level = logging.DEBUG
    if args.json_logs:
        # JSON в консоль, без файла
        setup_logging(json_format=True, level=log_config.level)
    else:
        setup_logging_from_config(log_config)

    logger.debug(f"Команда: {args.command}")

    if args.command == "run":
        return cmd_run(args, config)
    if args.command == "check":
        return cmd_check(args, config)
    if args.command == "remove-node":
        return cmd_remove_node(args, config)

    parser.print_help()
    return 2


__all__ = ["setup_parser", "main", "cmd_run", "cmd_check", "cmd_remove_node"]
