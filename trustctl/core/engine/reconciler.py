"""
Reconciler — one pass of desired trust-store state onto the host.

Flow:
    package → trust directory → certificate files → legacy enable → rebuild

Every step is an Action dispatched through the adapter registry. The
receipts' ``changed`` flags are collected in a ChangeAccumulator and
evaluated once, after all directory and certificate work finished, so
the rebuild command runs at most once per pass.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from trustctl.adapters.registry import AdapterRegistry
from trustctl.core.models.action import Action, Receipt
from trustctl.core.models.config import DesiredCertificate, ReconciliationConfig
from trustctl.core.models.profile import OsProfile
from trustctl.core.models.result import ReconciliationResult
from trustctl.core.services.sources import SourceError, resolve_content

logger = logging.getLogger(__name__)

DIRECTORY_ACTION_ID = "directory:trusted_certs"
ENABLE_ACTION_ID = "exec:enable_ca_trust"
UPDATE_ACTION_ID = "exec:ca_cert_update"


@dataclass
class ChangeAccumulator:
    """Changes seen during a pass that justify a trust-store rebuild."""

    directory: bool = False
    certificates: set[str] = field(default_factory=set)

    @property
    def any(self) -> bool:
        return self.directory or bool(self.certificates)


def _marker(receipt: Receipt) -> str:
    return "✓" if receipt.ok else "✗" if receipt.failed else "⊘"


def _log(receipt: Receipt) -> None:
    logger.info(
        "%s %s → %s%s",
        _marker(receipt),
        receipt.action_id,
        receipt.status,
        " (changed)" if receipt.changed else "",
    )


# ── Action builders ─────────────────────────────────────────────


def package_action(profile: OsProfile, config: ReconciliationConfig) -> Action | None:
    """The package action, or None when the package is not managed."""
    if not config.install_package:
        return None
    name = config.package_name or profile.package_name
    return Action(
        id=f"package:{name}",
        name=f"ensure package {name} {config.package_ensure}",
        adapter="package",
        params={"package": name, "ensure": config.package_ensure},
    )


def directory_action(profile: OsProfile, config: ReconciliationConfig) -> Action:
    """The trust directory action (purge keeps present certificates only)."""
    purge = config.purge_unmanaged_cas
    return Action(
        id=DIRECTORY_ACTION_ID,
        name="ensure trusted certificate directory",
        adapter="filesystem",
        params={
            "operation": "ensure_directory",
            "path": profile.trusted_cert_dir,
            "owner": profile.dir_owner,
            "group": config.cert_dir_group or profile.dir_group,
            "mode": config.cert_dir_mode or profile.dir_mode,
            "purge": purge,
            "recurse": purge,
            "keep": [profile.cert_filename(c.name) for c in config.present_certificates()],
        },
    )


def certificate_action(
    profile: OsProfile,
    config: ReconciliationConfig,
    cert: DesiredCertificate,
    content: bytes | None = None,
) -> Action:
    """The file action for one certificate."""
    path = profile.cert_path(cert.name)
    if cert.ensure == "absent":
        params = {"operation": "remove_file", "path": path}
    else:
        params = {
            "operation": "ensure_file",
            "path": path,
            "content": content or b"",
            "owner": profile.dir_owner,
            "group": config.ca_file_group or profile.file_group,
            "mode": config.ca_file_mode or profile.file_mode,
        }
    return Action(
        id=f"certificate:{cert.name}",
        name=f"{cert.ensure} {profile.cert_filename(cert.name)}",
        adapter="filesystem",
        params=params,
    )


def enable_action(profile: OsProfile, config: ReconciliationConfig) -> Action | None:
    """The guarded legacy enable command, only where the platform needs it."""
    if not profile.requires_legacy_enable:
        return None
    return Action(
        id=ENABLE_ACTION_ID,
        name="enable shared trust store",
        adapter="command",
        params={
            "command": list(profile.enable_command(force=config.force_enable)),
            "path": list(profile.update_command_path),
            "only_if": list(profile.legacy_check_command),
            "only_if_match": profile.legacy_check_match,
        },
    )


def update_action(profile: OsProfile) -> Action:
    """The trust-store rebuild command."""
    return Action(
        id=UPDATE_ACTION_ID,
        name="rebuild trust store",
        adapter="command",
        params={
            "command": list(profile.update_command),
            "path": list(profile.update_command_path),
        },
    )


# ── The pass ────────────────────────────────────────────────────


def reconcile(
    profile: OsProfile,
    config: ReconciliationConfig,
    registry: AdapterRegistry,
    base_dir: Path | None = None,
    dry_run: bool = False,
) -> ReconciliationResult:
    """Apply the desired state once.

    Args:
        profile: Resolved platform profile.
        config: Desired state.
        registry: Adapter registry for dispatch.
        base_dir: Directory relative certificate sources resolve against.
        dry_run: If True, validate but don't execute.

    Returns:
        ReconciliationResult for this pass. Failures are recorded in it,
        never raised.
    """
    result = ReconciliationResult(dry_run=dry_run)
    changes = ChangeAccumulator()
    timeout = config.command_timeout

    def dispatch(action: Action) -> Receipt:
        receipt = registry.execute_action(action, dry_run=dry_run, timeout=timeout)
        _log(receipt)
        return receipt

    # ── Package ──────────────────────────────────────────────────
    action = package_action(profile, config)
    if action is not None:
        receipt = result.record(dispatch(action))
        if receipt.failed:
            logger.error("Package %s failed, halting pass: %s", action.params["package"], receipt.error)
            result.halted = True
            return result
        result.package_changed = receipt.changed

    # ── Trust directory ──────────────────────────────────────────
    dir_receipt = result.record(dispatch(directory_action(profile, config)))
    changes.directory = dir_receipt.changed
    result.directory_changed = dir_receipt.changed

    # ── Certificates ─────────────────────────────────────────────
    certs = [c for _, c in sorted(config.certificates.items())]
    if dir_receipt.failed:
        for cert in certs:
            result.record(Receipt.skip(
                adapter="filesystem",
                action_id=f"certificate:{cert.name}",
                reason=f"{DIRECTORY_ACTION_ID} failed",
            ))
    elif certs:
        def sync(cert: DesiredCertificate) -> Receipt:
            return _sync_certificate(profile, config, cert, base_dir, dispatch)

        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            receipts = list(pool.map(sync, certs))

        for cert, receipt in zip(certs, receipts):
            result.record(receipt)
            if receipt.changed:
                changes.certificates.add(cert.name)
        result.certificates_changed = set(changes.certificates)

    # ── Legacy enable ────────────────────────────────────────────
    action = enable_action(profile, config)
    if action is not None:
        receipt = result.record(dispatch(action))
        if receipt.metadata.get("guard") == "unreachable":
            result.warnings.append(f"GuardConditionFailure: {receipt.output}")
        result.legacy_enable_ran = bool(receipt.ok and receipt.metadata.get("ran", True))

    # ── Rebuild (coalesced) ──────────────────────────────────────
    if changes.any or config.always_update_certs:
        receipt = result.record(dispatch(update_action(profile)))
        result.rebuild_triggered = receipt.status != "skipped"
    else:
        logger.debug("Trust store unchanged, no rebuild")

    logger.info(
        "Pass %s: directory=%s certificates=%s rebuild=%s",
        result.status,
        result.directory_changed,
        sorted(result.certificates_changed),
        result.rebuild_triggered,
    )
    return result


def _sync_certificate(
    profile: OsProfile,
    config: ReconciliationConfig,
    cert: DesiredCertificate,
    base_dir: Path | None,
    dispatch,
) -> Receipt:
    content: bytes | None = None
    if cert.ensure == "present":
        try:
            content = resolve_content(cert, base_dir=base_dir, timeout=config.command_timeout)
        except SourceError as e:
            logger.error("Certificate %s: %s", cert.name, e)
            return Receipt.failure(
                adapter="source",
                action_id=f"certificate:{cert.name}",
                error=str(e),
            )
    return dispatch(certificate_action(profile, config, cert, content))
