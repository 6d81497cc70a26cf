"""
Pinning engine — resolve, pin and build tools as per-tool module files.
"""

from binpin.core.services.pinning.driver import get, get_all, pin, rename, uninstall
from binpin.core.services.pinning.installer import InstallConfig, get_package
from binpin.core.services.pinning.listing import format_pinned_table, list_pinned, sort_pinned
from binpin.core.services.pinning.target import parse_target
from binpin.core.services.pinning.toolchain import Deadline, Toolchain, UpdatePolicy

__all__ = [
    "Deadline",
    "InstallConfig",
    "Toolchain",
    "UpdatePolicy",
    "format_pinned_table",
    "get",
    "get_all",
    "get_package",
    "list_pinned",
    "parse_target",
    "pin",
    "rename",
    "uninstall",
    "sort_pinned",
]
