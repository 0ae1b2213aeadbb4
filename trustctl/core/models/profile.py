"""
OS profile model — the trust-store conventions of one platform.

Built exclusively by the profile resolver in
``trustctl.core.platform.profiles``. Everything downstream reads it.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

# Executable search path for every command the reconciler runs
DEFAULT_COMMAND_PATH: tuple[str, ...] = ("/usr/sbin", "/usr/bin", "/bin")


class OsProfile(BaseModel):
    """Where and how a platform keeps its trusted CA certificates."""

    model_config = ConfigDict(frozen=True)

    family: str
    os_name: str = ""
    major_version: str = ""

    trusted_cert_dir: str
    dir_owner: str = "root"
    dir_group: str = "root"
    dir_mode: str = "0755"
    cert_file_extension: Literal["crt", "pem"] = "crt"

    file_group: str = "root"
    file_mode: str = "0644"

    update_command: tuple[str, ...] = ("update-ca-certificates",)
    update_command_path: tuple[str, ...] = DEFAULT_COMMAND_PATH

    package_name: str = "ca-certificates"

    # Older packages ship the trust store disabled
    requires_legacy_enable: bool = False
    legacy_enable_tool: str | None = None
    legacy_check_command: tuple[str, ...] = ()
    legacy_check_match: str = "DISABLED"

    def cert_filename(self, name: str) -> str:
        """On-disk filename for a certificate name."""
        return f"{name}.{self.cert_file_extension}"

    def cert_path(self, name: str) -> str:
        """Absolute path of a certificate inside the trust directory."""
        return f"{self.trusted_cert_dir.rstrip('/')}/{self.cert_filename(name)}"

    def enable_command(self, force: bool = False) -> tuple[str, ...]:
        """The legacy enable command, ``force-enable`` when forced."""
        if not self.legacy_enable_tool:
            return ()
        return (self.legacy_enable_tool, "force-enable" if force else "enable")
