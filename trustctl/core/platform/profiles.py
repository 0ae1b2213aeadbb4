"""
OS profile resolver — platform identity to trust-store conventions.

The platform table is ordered data: each ``PlatformRule`` names a
family, a predicate over (os name, major version), and the fields it
sets. Rules are evaluated top to bottom, first match wins. No match
raises ``UnsupportedPlatform``.

Per-field defaults (group, mode, update command, package name) are
applied only after a rule matched, never for an unknown platform.

Adding a platform is a table edit:

    PlatformRule("Gentoo", _any_version, {"trusted_cert_dir": "..."}),
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from trustctl.core.models.profile import OsProfile

logger = logging.getLogger(__name__)


class UnsupportedPlatform(Exception):
    """Raised when no trust-store profile matches the OS family/version."""

    def __init__(self, family: str, version: str):
        self.family = family
        self.version = version
        super().__init__(
            f"Unsupported osfamily ({family}) or unsupported version ({version})"
        )


# ── Per-field defaults ──────────────────────────────────────────

PROFILE_DEFAULTS: dict[str, Any] = {
    "dir_group": "root",
    "dir_mode": "0755",
    "update_command": ("update-ca-certificates",),
    "package_name": "ca-certificates",
    "cert_file_extension": "crt",
}


# ── Version predicates ──────────────────────────────────────────

Predicate = Callable[[str, int | None], bool]


def _any_version(os_name: str, major: int | None) -> bool:
    return True


def _major_below(limit: int) -> Predicate:
    def check(os_name: str, major: int | None) -> bool:
        return major is not None and major < limit
    return check


def _major_at_least(limit: int) -> Predicate:
    def check(os_name: str, major: int | None) -> bool:
        return major is not None and major >= limit
    return check


def _os_named(name: str) -> Predicate:
    def check(os_name: str, major: int | None) -> bool:
        return os_name.lower() == name.lower()
    return check


@dataclass(frozen=True)
class PlatformRule:
    """One row of the platform table."""

    family: str
    predicate: Predicate
    fields: dict[str, Any] = field(default_factory=dict)

    def matches(self, family: str, os_name: str, major: int | None) -> bool:
        return family.lower() == self.family.lower() and self.predicate(os_name, major)


_DEBIAN_DIR = "/usr/local/share/ca-certificates"
_REDHAT_DIR = "/etc/pki/ca-trust/source/anchors"
_REDHAT_UPDATE = ("update-ca-trust", "extract")

PLATFORM_RULES: tuple[PlatformRule, ...] = (
    # Debian proper ships the directory setgid staff
    PlatformRule("Debian", _os_named("Debian"), {
        "trusted_cert_dir": _DEBIAN_DIR,
        "dir_group": "staff",
        "dir_mode": "2665",
    }),
    PlatformRule("Debian", _any_version, {
        "trusted_cert_dir": _DEBIAN_DIR,
        "dir_group": "staff",
    }),
    # RedHat < 7 ships the shared trust store disabled
    PlatformRule("RedHat", _major_below(7), {
        "trusted_cert_dir": _REDHAT_DIR,
        "update_command": _REDHAT_UPDATE,
        "requires_legacy_enable": True,
        "legacy_enable_tool": "update-ca-trust",
        "legacy_check_command": ("update-ca-trust", "check"),
        "legacy_check_match": "DISABLED",
    }),
    PlatformRule("RedHat", _any_version, {
        "trusted_cert_dir": _REDHAT_DIR,
        "update_command": _REDHAT_UPDATE,
    }),
    PlatformRule("Archlinux", _any_version, {
        "trusted_cert_dir": "/etc/ca-certificates/trust-source/anchors/",
        "update_command": ("trust", "extract-compat"),
    }),
    # SLES 11 and older keep an OpenSSL hash directory
    PlatformRule("Suse", _major_below(12), {
        "trusted_cert_dir": "/etc/ssl/certs",
        "update_command": ("c_rehash",),
        "package_name": "openssl-certs",
        "cert_file_extension": "pem",
    }),
    PlatformRule("Suse", _major_at_least(12), {
        "trusted_cert_dir": "/etc/pki/trust/anchors",
        "update_command": ("update-ca-certificates",),
    }),
    PlatformRule("AIX", _any_version, {
        "trusted_cert_dir": "/var/ssl/certs",
        "update_command": ("/usr/bin/c_rehash",),
        "dir_group": "system",
    }),
    PlatformRule("Solaris", _major_at_least(11), {
        "trusted_cert_dir": "/etc/certs/CA/",
        "update_command": ("/usr/sbin/svcadm", "restart", "/system/ca-certificates"),
        "dir_group": "sys",
        "cert_file_extension": "pem",
    }),
)


def parse_major(release: str | int | None) -> int | None:
    """Leading integer of a release string ("7.9" → 7), or None."""
    if release is None:
        return None
    match = re.match(r"\s*(\d+)", str(release))
    return int(match.group(1)) if match else None


def resolve_profile(
    family: str,
    os_name: str = "",
    release: str | int | None = "",
    rules: tuple[PlatformRule, ...] = PLATFORM_RULES,
) -> OsProfile:
    """Resolve the trust-store profile for a platform.

    Args:
        family: OS family (Debian, RedHat, Archlinux, Suse, AIX, Solaris).
        os_name: OS short name (Debian, Ubuntu, CentOS, ...).
        release: Major version or full release string.
        rules: Platform table, in priority order.

    Returns:
        The matching OsProfile.

    Raises:
        UnsupportedPlatform: If no rule matches.
    """
    version = "" if release is None else str(release)
    major = parse_major(version)

    for rule in rules:
        if not rule.matches(family, os_name or "", major):
            continue

        fields = {**PROFILE_DEFAULTS, **rule.fields}
        profile = OsProfile(
            family=rule.family,
            os_name=os_name or "",
            major_version=str(major) if major is not None else version,
            **fields,
        )
        logger.debug(
            "Resolved %s %s %s → %s", family, os_name, version, profile.trusted_cert_dir
        )
        return profile

    raise UnsupportedPlatform(family, version)


def supported_families(rules: tuple[PlatformRule, ...] = PLATFORM_RULES) -> list[str]:
    """Families that appear in the platform table, in table order."""
    seen: list[str] = []
    for rule in rules:
        if rule.family not in seen:
            seen.append(rule.family)
    return seen
