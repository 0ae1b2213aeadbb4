"""
OS facts — read-only probe of the local platform identity.

Produces the (family, name, release) triple the profile resolver
takes. Linux is identified from /etc/os-release, or from
/etc/redhat-release and /etc/SuSE-release on older distributions;
AIX and Solaris from ``platform.system()``.
"""

from __future__ import annotations

import logging
import platform
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")
REDHAT_RELEASE_PATH = Path("/etc/redhat-release")
SUSE_RELEASE_PATH = Path("/etc/SuSE-release")

# "Red Hat Enterprise Linux Server release 6.10 (Santiago)"
_REDHAT_RELEASE_RE = re.compile(r"^(?P<distro>.+?)\s+release\s+(?P<version>\d+(?:\.\d+)*)")

# redhat-release distribution prefix → OS short name
_REDHAT_NAMES: tuple[tuple[str, str], ...] = (
    ("CentOS", "CentOS"),
    ("Red Hat", "RedHat"),
    ("Scientific", "Scientific"),
    ("Oracle", "OracleLinux"),
)

# os-release ID / ID_LIKE → OS family
_FAMILY_BY_ID: dict[str, str] = {
    "debian": "Debian",
    "ubuntu": "Debian",
    "raspbian": "Debian",
    "linuxmint": "Debian",
    "rhel": "RedHat",
    "centos": "RedHat",
    "fedora": "RedHat",
    "rocky": "RedHat",
    "almalinux": "RedHat",
    "ol": "RedHat",
    "amzn": "RedHat",
    "arch": "Archlinux",
    "manjaro": "Archlinux",
    "sles": "Suse",
    "sled": "Suse",
    "opensuse": "Suse",
    "opensuse-leap": "Suse",
    "suse": "Suse",
}

# os-release ID → OS short name
_NAME_BY_ID: dict[str, str] = {
    "debian": "Debian",
    "ubuntu": "Ubuntu",
    "rhel": "RedHat",
    "centos": "CentOS",
    "fedora": "Fedora",
    "rocky": "Rocky",
    "almalinux": "AlmaLinux",
    "ol": "OracleLinux",
    "amzn": "Amazon",
    "arch": "Archlinux",
    "sles": "SLES",
    "opensuse-leap": "OpenSuSE",
}


@dataclass(frozen=True)
class OsFacts:
    """Platform identity."""

    family: str
    name: str
    release: str

    def to_dict(self) -> dict:
        return {"family": self.family, "name": self.name, "release": self.release}


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines (values may be quoted)."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def facts_from_os_release(values: dict[str, str]) -> OsFacts:
    """Derive OsFacts from parsed os-release values."""
    os_id = values.get("ID", "").lower()
    candidates = [os_id, *values.get("ID_LIKE", "").lower().split()]

    family = ""
    for candidate in candidates:
        if candidate in _FAMILY_BY_ID:
            family = _FAMILY_BY_ID[candidate]
            break

    name = _NAME_BY_ID.get(os_id, os_id.capitalize())
    release = values.get("VERSION_ID", "")
    return OsFacts(family=family or os_id.capitalize(), name=name, release=release)


def parse_redhat_release(text: str) -> OsFacts | None:
    """Facts from /etc/redhat-release ("CentOS release 6.10 (Final)")."""
    line = text.strip().splitlines()[0] if text.strip() else ""
    match = _REDHAT_RELEASE_RE.match(line)
    if not match:
        return None

    distro = match.group("distro").strip()
    name = next(
        (short for prefix, short in _REDHAT_NAMES if distro.startswith(prefix)),
        distro.split()[0],
    )
    return OsFacts(family="RedHat", name=name, release=match.group("version"))


def parse_suse_release(text: str) -> OsFacts | None:
    """Facts from /etc/SuSE-release (first line plus ``VERSION = 11``)."""
    lines = text.strip().splitlines()
    if not lines:
        return None

    values = {}
    for line in lines[1:]:
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip()

    version = values.get("VERSION")
    if not version:
        return None
    name = "OpenSuSE" if lines[0].lower().startswith("opensuse") else "SLES"
    return OsFacts(family="Suse", name=name, release=version)


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return None


def detect_os_facts(
    os_release: Path = OS_RELEASE_PATH,
    redhat_release: Path = REDHAT_RELEASE_PATH,
    suse_release: Path = SUSE_RELEASE_PATH,
) -> OsFacts:
    """Detect the local platform identity.

    Linux sources, first readable one wins: os-release, then the
    redhat-release and SuSE-release files older distributions ship
    instead.

    Returns:
        OsFacts. Unknown platforms still produce facts; rejecting them
        is the resolver's job.
    """
    system = platform.system()

    if system == "AIX":
        version = platform.version()
        return OsFacts(family="AIX", name="AIX", release=version)

    if system == "SunOS":
        # SunOS 5.11 → Solaris 11
        release = platform.release()
        minor = release.split(".", 1)[1] if "." in release else release
        return OsFacts(family="Solaris", name="Solaris", release=minor)

    text = _read(os_release)
    if text is not None:
        facts = facts_from_os_release(parse_os_release(text))
        logger.debug("Detected platform %s from %s", facts, os_release)
        return facts

    for path, parse in ((redhat_release, parse_redhat_release), (suse_release, parse_suse_release)):
        text = _read(path)
        facts = parse(text) if text is not None else None
        if facts is not None:
            logger.debug("Detected platform %s from %s", facts, path)
            return facts

    logger.warning("Cannot identify the distribution; falling back to %s", system)
    return OsFacts(family=system, name=system, release=platform.release())
