"""
Reconciliation result — the audit output of one pass.

Built by the reconciler, reported, then discarded. Nothing here is
persisted between passes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from trustctl.core.models.action import Receipt


@dataclass(frozen=True)
class CollaboratorFailure:
    """A failed package, filesystem or command operation."""

    resource: str       # e.g. "certificate:corp-root"
    error: str

    def to_dict(self) -> dict:
        return {"resource": self.resource, "error": self.error}


@dataclass
class ReconciliationResult:
    """What one reconciliation pass did."""

    directory_changed: bool = False
    certificates_changed: set[str] = field(default_factory=set)
    package_changed: bool = False
    rebuild_triggered: bool = False
    legacy_enable_ran: bool = False

    dry_run: bool = False
    halted: bool = False
    receipts: list[Receipt] = field(default_factory=list)
    failures: list[CollaboratorFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether the pass altered the host at all."""
        return (
            self.directory_changed
            or bool(self.certificates_changed)
            or self.package_changed
            or self.rebuild_triggered
            or self.legacy_enable_ran
        )

    @property
    def status(self) -> str:
        if not self.failures:
            return "ok"
        if self.halted or not any(r.ok for r in self.receipts):
            return "failed"
        return "partial"

    def record(self, receipt: Receipt) -> Receipt:
        """Keep a receipt; turn a failed one into a CollaboratorFailure."""
        self.receipts.append(receipt)
        if receipt.failed:
            self.failures.append(
                CollaboratorFailure(resource=receipt.action_id, error=receipt.error or "failed")
            )
        return receipt

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "dry_run": self.dry_run,
            "halted": self.halted,
            "directory_changed": self.directory_changed,
            "certificates_changed": sorted(self.certificates_changed),
            "package_changed": self.package_changed,
            "rebuild_triggered": self.rebuild_triggered,
            "legacy_enable_ran": self.legacy_enable_ran,
            "failures": [f.to_dict() for f in self.failures],
            "warnings": list(self.warnings),
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }
