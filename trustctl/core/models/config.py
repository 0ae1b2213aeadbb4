"""
Desired-state models — what the trust store should look like.

Loaded from trust.yml by ``trustctl.core.config.loader``. The engine
treats these as read-only.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

_VERSION_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z.+~:_-]*$")
_MODE_RE = re.compile(r"^[0-7]{3,4}$")
_SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")

PACKAGE_STATES = ("installed", "absent", "latest")


class DesiredCertificate(BaseModel):
    """A CA certificate that should (or should not) be trusted.

    Exactly one of ``source`` or ``content`` is required when
    ``ensure`` is ``present``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = ""
    source: str | None = None       # path, file:// or http(s):// URI
    content: str | None = None      # inline PEM text
    ensure: Literal["present", "absent"] = "present"
    checksum: str | None = None     # sha256 hex of the content
    verify_https: bool = True

    @field_validator("checksum")
    @classmethod
    def _check_checksum(cls, value: str | None) -> str | None:
        if value is not None and not _SHA256_RE.match(value):
            raise ValueError("checksum must be a sha256 hex digest")
        return value.lower() if value else value

    @model_validator(mode="after")
    def _check_source(self) -> DesiredCertificate:
        if self.ensure == "present":
            given = [v for v in (self.source, self.content) if v]
            if len(given) != 1:
                raise ValueError(
                    f"certificate '{self.name or '?'}' needs exactly one of 'source' or 'content'"
                )
        return self


class ReconciliationConfig(BaseModel):
    """The declared trust-store configuration for one host."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    certificates: dict[str, DesiredCertificate] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("certificates", "ca_certs"),
    )

    install_package: bool = True
    package_name: str | None = None
    package_ensure: str = "installed"
    package_manager: str | None = None

    always_update_certs: bool = False
    purge_unmanaged_cas: bool = Field(
        default=False,
        validation_alias=AliasChoices("purge_unmanaged_cas", "purge_unmanaged_CAs"),
    )
    force_enable: bool = False

    # Overrides of the platform profile
    cert_dir_group: str | None = None
    cert_dir_mode: str | None = None
    ca_file_group: str | None = None
    ca_file_mode: str | None = None

    command_timeout: int = Field(default=300, gt=0)
    max_workers: int = Field(default=4, ge=1)

    @field_validator("certificates", mode="before")
    @classmethod
    def _name_certificates(cls, value: object) -> object:
        """Carry each map key into the certificate's ``name``."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        named = {}
        for key, cert in value.items():
            key = str(key)
            if isinstance(cert, DesiredCertificate):
                named[key] = cert.model_copy(update={"name": key})
            elif isinstance(cert, dict):
                named[key] = {**cert, "name": key}
            else:
                named[key] = cert
        return named

    @field_validator("certificates")
    @classmethod
    def _check_names(cls, value: dict[str, DesiredCertificate]) -> dict[str, DesiredCertificate]:
        for name in value:
            if not name or name in (".", "..") or "/" in name or "\0" in name:
                raise ValueError(f"invalid certificate name: {name!r}")
        return value

    @field_validator("package_ensure", mode="before")
    @classmethod
    def _check_package_ensure(cls, value: object) -> str:
        value = str(value).strip()
        if value == "present":
            return "installed"
        if value in PACKAGE_STATES or _VERSION_RE.match(value):
            return value
        raise ValueError(f"invalid package_ensure: {value!r}")

    @field_validator("cert_dir_mode", "ca_file_mode", mode="before")
    @classmethod
    def _check_mode(cls, value: object) -> str | None:
        if isinstance(value, int):
            raise ValueError("file modes must be quoted strings, e.g. '0755'")
        if value is not None and not _MODE_RE.match(str(value)):
            raise ValueError(f"invalid file mode: {value!r}")
        return value

    def present_certificates(self) -> list[DesiredCertificate]:
        """Certificates that should exist, sorted by name."""
        return [c for _, c in sorted(self.certificates.items()) if c.ensure == "present"]
