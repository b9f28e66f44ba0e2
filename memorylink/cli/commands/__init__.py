"""CLI command modules for MemoryLink.

Each module contains related command handlers used by __main__.py.
"""

from memorylink.cli.commands.audit import cmd_audit
from memorylink.cli.commands.config import cmd_config
from memorylink.cli.commands.init import cmd_init
from memorylink.cli.commands.records import (
    cmd_capture,
    cmd_deprecate,
    cmd_list,
    cmd_promote,
    cmd_query,
    cmd_supersede,
)
from memorylink.cli.commands.security import cmd_gate, cmd_scan

__all__ = [
    "cmd_audit",
    "cmd_capture",
    "cmd_config",
    "cmd_deprecate",
    "cmd_gate",
    "cmd_init",
    "cmd_list",
    "cmd_promote",
    "cmd_query",
    "cmd_scan",
    "cmd_supersede",
]
