"""Adapters — bindings to the host's package manager, filesystem and commands.

Public re-exports for convenient access.
"""

from trustctl.adapters.base import Adapter, ExecutionContext
from trustctl.adapters.mock import MockAdapter
from trustctl.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
