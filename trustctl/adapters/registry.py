"""
Adapter registry — dispatches reconciler actions to host adapters.

Each Action names its adapter ("package", "filesystem", "command").
The registry looks it up, validates the action, then executes it, or
stops at validation in dry-run. In mock mode nothing reaches the host:
every action gets an unchanged success receipt.
"""

from __future__ import annotations

import logging
import time

from trustctl.adapters.base import Adapter, ExecutionContext
from trustctl.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters by name, plus the dispatch rules around them."""

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self.mock_mode = mock_mode

    def register(self, adapter: Adapter) -> None:
        """Register an adapter under its name, replacing any previous one."""
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %s", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def execute_action(
        self,
        action: Action,
        dry_run: bool = False,
        timeout: int = 300,
    ) -> Receipt:
        """Run one action through its adapter. Never raises.

        Args:
            action: The action to dispatch.
            dry_run: Validate only; the receipt is a skip.
            timeout: Bound on any external command the adapter runs.
        """
        if self.mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.name or action.id}",
                metadata={"mock": True, "dry_run": dry_run},
            )

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        context = ExecutionContext(
            action=action,
            dry_run=dry_run,
            timeout=timeout,
            params=action.params,
        )
        started = time.monotonic()

        try:
            if not adapter.is_available():
                return Receipt.failure(
                    adapter=adapter.name,
                    action_id=action.id,
                    error=f"Adapter '{adapter.name}' is not available on this host",
                )
            valid, problem = adapter.validate(context)
            if not valid:
                return Receipt.failure(
                    adapter=adapter.name,
                    action_id=action.id,
                    error=f"Validation failed: {problem}",
                )
            if dry_run:
                return Receipt.skip(
                    adapter=adapter.name,
                    action_id=action.id,
                    reason=f"[dry-run] would {action.name or action.id}",
                    metadata={"dry_run": True},
                )
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised on %s: %s", adapter.name, action.id, e)
            receipt = Receipt.failure(
                adapter=adapter.name,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt


def default_registry(
    mock_mode: bool = False,
    package_manager: str | None = None,
) -> AdapterRegistry:
    """A registry wired to the real host adapters."""
    from trustctl.adapters.system.command import CommandAdapter
    from trustctl.adapters.system.filesystem import FilesystemAdapter
    from trustctl.adapters.system.package import PackageAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    for adapter in (FilesystemAdapter(), CommandAdapter(), PackageAdapter(manager=package_manager)):
        registry.register(adapter)
    return registry
