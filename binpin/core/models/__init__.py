"""
Domain models — Pydantic types for binpin.

All models are re-exported here for convenient access:

    from binpin.core.models import Package, ModuleVersion, Action, Receipt
"""

from binpin.core.models.action import Action, Receipt
from binpin.core.models.package import (
    ModuleVersion,
    Package,
    PinnedTool,
    PinnedVersion,
)

__all__ = [
    # action.py
    "Action",
    # package.py
    "ModuleVersion",
    "Package",
    "PinnedTool",
    "PinnedVersion",
    "Receipt",
]
