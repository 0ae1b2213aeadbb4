"""
Apply use case — one full reconciliation pass from config file to host.

Loads the trust config, identifies the platform, resolves its profile,
and runs the reconciler. Unsupported platforms are rejected before any
action is dispatched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from trustctl.adapters.registry import AdapterRegistry, default_registry
from trustctl.core.config.loader import ConfigError, find_config_file, load_config
from trustctl.core.engine.reconciler import reconcile
from trustctl.core.models.config import ReconciliationConfig
from trustctl.core.models.profile import OsProfile
from trustctl.core.models.result import ReconciliationResult
from trustctl.core.platform.facts import OsFacts, detect_os_facts
from trustctl.core.platform.profiles import UnsupportedPlatform, resolve_profile

logger = logging.getLogger(__name__)


class PlatformOverrideError(ValueError):
    """Raised when platform overrides are incomplete."""


@dataclass
class ApplyResult:
    """Outcome of the apply use case."""

    result: ReconciliationResult | None = None
    profile: OsProfile | None = None
    facts: OsFacts | None = None
    config_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None and not self.result.failures

    def to_dict(self) -> dict:
        out: dict = {}
        if self.error:
            out["error"] = self.error
            return out

        out["config_path"] = str(self.config_path) if self.config_path else None
        if self.facts:
            out["platform"] = self.facts.to_dict()
        if self.profile:
            out["profile"] = self.profile.model_dump(mode="json")
        if self.result:
            out["result"] = self.result.to_dict()
        return out


def platform_facts(
    family: str | None = None,
    name: str | None = None,
    release: str | None = None,
) -> OsFacts:
    """Explicit platform identity, with detection filling the gaps.

    An explicit family needs an explicit release: the detected release
    belongs to the detected family, not to the one asked for.

    Raises:
        PlatformOverrideError: If ``family`` is given without ``release``.
    """
    if family and release is None:
        raise PlatformOverrideError(
            f"OS family {family!r} was given without a release; pass both or neither"
        )
    if family:
        return OsFacts(family=family, name=name or family, release=release)

    detected = detect_os_facts()
    return OsFacts(
        family=detected.family,
        name=name or detected.name,
        release=release if release is not None else detected.release,
    )


def run_apply(
    config_path: Path | None = None,
    config: ReconciliationConfig | None = None,
    family: str | None = None,
    name: str | None = None,
    release: str | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
) -> ApplyResult:
    """Run one reconciliation pass.

    Args:
        config_path: Optional explicit path to trust.yml.
        config: Pre-built config (skips loading from disk).
        family: OS family override (default: detected).
        name: OS short name override.
        release: OS release override.
        dry_run: If True, plan but don't execute.
        mock_mode: If True, use mock adapter responses.
        registry: Optional pre-configured adapter registry.

    Returns:
        ApplyResult. Configuration and platform errors land in ``error``.
    """
    out = ApplyResult()

    # ── Load config ──────────────────────────────────────────────
    if config is None:
        try:
            if config_path is None:
                config_path = find_config_file()
            config = load_config(config_path)
        except ConfigError as e:
            out.error = str(e)
            return out
    out.config_path = config_path

    # ── Resolve platform (pre-flight) ────────────────────────────
    try:
        facts = platform_facts(family, name, release)
    except PlatformOverrideError as e:
        out.error = str(e)
        return out
    out.facts = facts
    try:
        profile = resolve_profile(facts.family, facts.name, facts.release)
    except UnsupportedPlatform as e:
        logger.error("%s", e)
        out.error = str(e)
        return out
    out.profile = profile

    # ── Reconcile ────────────────────────────────────────────────
    if registry is None:
        registry = default_registry(mock_mode=mock_mode, package_manager=config.package_manager)

    base_dir = config_path.parent.resolve() if config_path else None
    out.result = reconcile(profile, config, registry, base_dir=base_dir, dry_run=dry_run)
    return out
