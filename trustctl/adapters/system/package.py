"""
Package adapter — ensure the CA bundle package is installed/absent/pinned.

Queries the installed version first and only invokes the package
manager when the state differs. After acting, the version is queried
again to confirm the result.

Supported managers:
    apt    → dpkg-query / apt-get
    dnf    → rpm -q / dnf
    yum    → rpm -q / yum
    zypper → rpm -q / zypper
    pacman → pacman -Q / pacman -S
    pkg    → pkg list / pkg install   (Solaris IPS)
"""

from __future__ import annotations

import logging
import shutil
import subprocess

from trustctl.adapters.base import Adapter, ExecutionContext
from trustctl.core.models.action import Receipt

logger = logging.getLogger(__name__)

_RPM_QUERY = ["rpm", "-q", "--qf", "%{VERSION}-%{RELEASE}\n"]

_MANAGERS: dict[str, dict] = {
    "apt": {
        "cli": "apt-get",
        "query": ["dpkg-query", "-W", "-f=${Status} ${Version}\n"],
        "install": ["apt-get", "install", "-y", "-q"],
        "upgrade": ["apt-get", "install", "-y", "-q", "--only-upgrade"],
        "remove": ["apt-get", "remove", "-y", "-q"],
        "pin": "=",
    },
    "dnf": {
        "cli": "dnf",
        "query": _RPM_QUERY,
        "install": ["dnf", "install", "-y"],
        "upgrade": ["dnf", "upgrade", "-y"],
        "remove": ["dnf", "remove", "-y"],
        "pin": "-",
    },
    "yum": {
        "cli": "yum",
        "query": _RPM_QUERY,
        "install": ["yum", "install", "-y"],
        "upgrade": ["yum", "update", "-y"],
        "remove": ["yum", "remove", "-y"],
        "pin": "-",
    },
    "zypper": {
        "cli": "zypper",
        "query": _RPM_QUERY,
        "install": ["zypper", "--non-interactive", "install"],
        "upgrade": ["zypper", "--non-interactive", "update"],
        "remove": ["zypper", "--non-interactive", "remove"],
        "pin": "=",
    },
    "pacman": {
        "cli": "pacman",
        "query": ["pacman", "-Q"],
        "install": ["pacman", "-S", "--noconfirm", "--needed"],
        "upgrade": ["pacman", "-S", "--noconfirm"],
        "remove": ["pacman", "-R", "--noconfirm"],
        "pin": None,
    },
    "pkg": {
        "cli": "pkg",
        "query": ["pkg", "list", "-H"],
        "install": ["pkg", "install", "--accept"],
        "upgrade": ["pkg", "update", "--accept"],
        "remove": ["pkg", "uninstall"],
        "pin": "@",
    },
}

# Detection order when no manager is configured
_DETECT_ORDER = ("apt", "dnf", "yum", "zypper", "pacman", "pkg")


def detect_manager() -> str | None:
    """First package manager whose CLI is on PATH."""
    for manager in _DETECT_ORDER:
        if shutil.which(_MANAGERS[manager]["cli"]):
            return manager
    return None


def _run(argv: list[str], timeout: int) -> subprocess.CompletedProcess:
    return subprocess.run(argv, capture_output=True, text=True, timeout=timeout)


class PackageAdapter(Adapter):
    """Converge one system package.

    Action params:
        package (str): Package name.
        ensure (str): 'installed', 'absent', 'latest' or a version string.
    """

    def __init__(self, manager: str | None = None):
        self._manager = manager

    @property
    def name(self) -> str:
        return "package"

    @property
    def manager(self) -> str | None:
        return self._manager or detect_manager()

    def is_available(self) -> bool:
        return self.manager is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.params.get("package"):
            return False, "Missing required param: 'package'"

        manager = self.manager
        if manager is None:
            return False, "No supported package manager found"
        if manager not in _MANAGERS:
            return False, f"Unknown package manager: {manager}"

        ensure = context.action.params.get("ensure", "installed")
        if ensure not in ("installed", "absent", "latest") and _MANAGERS[manager]["pin"] is None:
            return False, f"{manager} cannot pin package versions"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        package = context.action.params["package"]
        ensure = context.action.params.get("ensure", "installed")
        manager = self.manager
        if manager not in _MANAGERS:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"No supported package manager (got {manager!r})",
            )
        mgr = _MANAGERS[manager]
        timeout = context.timeout

        try:
            before = self._installed_version(mgr, package, timeout)
            argv = self._plan(mgr, package, ensure, before)
            if argv is None:
                logger.debug("Package %s already %s (%s)", package, ensure, before)
                return Receipt.success(
                    adapter=self.name,
                    action_id=context.action.id,
                    metadata={"manager": manager, "version": before},
                )

            logger.info("Package %s: %s", package, " ".join(argv))
            proc = _run(argv, timeout)
            if proc.returncode != 0:
                output = (proc.stderr or proc.stdout or "").strip()
                logger.error("%s failed:\n%s", " ".join(argv), output)
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=output or f"{argv[0]} exited with code {proc.returncode}",
                    metadata={"manager": manager, "command": argv},
                )

            after = self._installed_version(mgr, package, timeout)

        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Package manager timed out after {timeout}s",
                metadata={"manager": manager},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Package manager error: {e}",
                metadata={"manager": manager},
            )

        problem = self._verify(ensure, after)
        if problem:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{package}: {problem}",
                metadata={"manager": manager, "version": after},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"{package} {before or 'absent'} → {after or 'absent'}",
            changed=before != after,
            metadata={"manager": manager, "version": after, "previous": before},
        )

    # ── Helpers ─────────────────────────────────────────────────

    @staticmethod
    def _installed_version(mgr: dict, package: str, timeout: int) -> str | None:
        """Installed version of ``package``, or None if not installed."""
        proc = _run([*mgr["query"], package], timeout)
        if proc.returncode != 0:
            return None

        out = proc.stdout.strip()
        if mgr["cli"] == "apt-get":
            # "install ok installed 1.2.3"
            if not out.startswith("install ok installed"):
                return None
            return out.rsplit(" ", 1)[-1]
        if mgr["cli"] in ("pacman", "pkg"):
            # "name version [...]"
            parts = out.split()
            return parts[1] if len(parts) > 1 else None
        return out.splitlines()[0] if out else None

    @staticmethod
    def _plan(mgr: dict, package: str, ensure: str, current: str | None) -> list[str] | None:
        """The command converging ``package`` to ``ensure``, or None."""
        if ensure == "absent":
            return [*mgr["remove"], package] if current else None
        if ensure == "installed":
            return None if current else [*mgr["install"], package]
        if ensure == "latest":
            return [*mgr["upgrade"], package] if current else [*mgr["install"], package]
        if current == ensure:
            return None
        return [*mgr["install"], f"{package}{mgr['pin']}{ensure}"]

    @staticmethod
    def _verify(ensure: str, version: str | None) -> str:
        if ensure == "absent":
            return "still installed" if version else ""
        if version is None:
            return "not installed after install"
        if ensure not in ("installed", "latest") and version != ensure:
            return f"installed version {version} does not match {ensure}"
        return ""
