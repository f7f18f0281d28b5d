"""
CLI команды.

- run.py: run
- check.py: check
- nodes.py: remove-node
"""

from .check import cmd_check
from .nodes import cmd_remove_node
from .run import cmd_run

__all__ = ["cmd_run", "cmd_check", "cmd_remove_node"]
