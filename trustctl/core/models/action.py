"""
Action and Receipt models — the execution contract.

Actions represent requested operations. Receipts represent results.
The reconciler sends Actions, adapters return Receipts. Never exceptions.

Every receipt carries ``metadata["changed"]``: whether the adapter
actually altered host state. The rebuild trigger is driven by it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A requested operation to be executed by an adapter.

    The ``id`` doubles as the resource identity reported on failure,
    e.g. ``directory:trusted_certs`` or ``certificate:corp-root``.
    """

    id: str                         # resource identity
    name: str = ""                  # human-readable name
    adapter: str                    # which adapter handles this
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Result of an adapter execution.

    Receipts capture the full outcome of an action. The adapter
    NEVER raises exceptions — failures are captured here.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @property
    def changed(self) -> bool:
        """Whether a successful action altered host state."""
        return self.ok and bool(self.metadata.get("changed", False))

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        changed: bool = False,
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        metadata = dict(kwargs.pop("metadata", {}) or {})
        metadata.setdefault("changed", changed)
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            metadata=metadata,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
