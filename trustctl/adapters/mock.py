"""
Mock adapter — universal test double for all adapter operations.

Used in mock mode to simulate the host without touching it.
Configurable to return success, failure, ``changed`` or custom
responses per action.
"""

from __future__ import annotations

import threading

from trustctl.adapters.base import Adapter, ExecutionContext
from trustctl.core.models.action import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default, returns an unchanged success for everything. Can be
    configured with custom responses per action ID.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
        default_changed: bool = False,
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._default_changed = default_changed
        self._responses: dict[str, Receipt] = {}
        self._changed: set[str] = set()
        self._call_log: list[ExecutionContext] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    def calls_for(self, action_id: str) -> list[ExecutionContext]:
        """Execution contexts received for one action ID."""
        return [c for c in self._call_log if c.action.id == action_id]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific action ID."""
        self._responses[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail."""
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
        )

    def set_changed(self, action_id: str, changed: bool = True) -> None:
        """Configure a specific action to report a state change."""
        if changed:
            self._changed.add(action_id)
        else:
            self._changed.discard(action_id)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        with self._lock:
            self._call_log.append(context)

        action_id = context.action.id
        if action_id in self._responses:
            return self._responses[action_id].model_copy(deep=True)

        return Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=self._default_output,
            changed=self._default_changed or action_id in self._changed,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
        self._changed.clear()
