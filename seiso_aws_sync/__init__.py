"""
Seiso AWS Sync.

Синхронизирует Seiso с регистрацией EC2 instances в classic ELB:
события CloudTrail из SQS -> NodeRecord -> rotation status node в Seiso.

Пример использования:
    from seiso_aws_sync import Orchestrator, load_config

    orchestrator = Orchestrator.from_config(load_config("config.yaml"))
    orchestrator.start()
"""

__version__ = "1.0.0"

from .config import load_config
from .orchestrator import Orchestrator

__all__ = ["Orchestrator", "load_config", "__version__"]
