"""
Точка входа для запуска модуля.

Позволяет запускать утилиту как:
    python -m seiso_aws_sync [команда] [опции]

Примеры:
    python -m seiso_aws_sync -c config.yaml run
    python -m seiso_aws_sync check
    python -m seiso_aws_sync remove-node i-0abc --remove-machine
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
