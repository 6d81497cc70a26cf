"""Adapters — tool bindings for external integrations.

Public re-exports for convenient access.
"""

from binpin.adapters.base import Adapter, ExecutionContext
from binpin.adapters.mock import MockAdapter
from binpin.adapters.toolchain.go import GoAdapter

__all__ = [
    "Adapter",
    "ExecutionContext",
    "GoAdapter",
    "MockAdapter",
]
