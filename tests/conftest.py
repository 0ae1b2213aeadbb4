"""
Shared test fixtures and configuration.
"""

import grp
import os
import pwd
from pathlib import Path

import pytest

from trustctl.adapters.mock import MockAdapter
from trustctl.adapters.registry import AdapterRegistry
from trustctl.adapters.system.filesystem import FilesystemAdapter
from trustctl.core.models.profile import OsProfile
from trustctl.core.platform.profiles import resolve_profile

CA1_PEM = (
    "-----BEGIN CERTIFICATE-----\n"
    "MIIBtTCCAVugAwIBAgIJAODxMZJb9d7HMAoGCCqGSM49BAMCMBUxEzARBgNVBAMM\n"
    "-----END CERTIFICATE-----\n"
)
CA2_PEM = (
    "-----BEGIN CERTIFICATE-----\n"
    "CkdlcHBldHRvMB4XDTI0MDUwMTAwMDAwMFoXDTM0MDQyODAwMDAwMFowFTETMBEG\n"
    "-----END CERTIFICATE-----\n"
)


@pytest.fixture
def host_user() -> str:
    """Name of the user running the tests."""
    return pwd.getpwuid(os.getuid()).pw_name


@pytest.fixture
def host_group() -> str:
    """Primary group of the user running the tests."""
    return grp.getgrgid(os.getgid()).gr_name


@pytest.fixture
def ca1_pem() -> str:
    return CA1_PEM


@pytest.fixture
def ca2_pem() -> str:
    return CA2_PEM


@pytest.fixture
def trust_dir(tmp_path: Path) -> Path:
    """Location of the trust directory (not created)."""
    return tmp_path / "anchors"


@pytest.fixture
def make_profile(trust_dir: Path, host_user: str, host_group: str):
    """Build a real platform profile pointed at a temp directory we own."""

    def build(family: str = "Debian", name: str = "Ubuntu", release: str = "22.04") -> OsProfile:
        return resolve_profile(family, name, release).model_copy(
            update={
                "trusted_cert_dir": str(trust_dir),
                "dir_owner": host_user,
                "dir_group": host_group,
                "dir_mode": "0755",
                "file_group": host_group,
            }
        )

    return build


@pytest.fixture
def profile(make_profile) -> OsProfile:
    return make_profile()


@pytest.fixture
def command_mock() -> MockAdapter:
    return MockAdapter(adapter_name="command")


@pytest.fixture
def package_mock() -> MockAdapter:
    return MockAdapter(adapter_name="package")


@pytest.fixture
def registry(command_mock: MockAdapter, package_mock: MockAdapter) -> AdapterRegistry:
    """Real filesystem, mocked commands and package manager."""
    reg = AdapterRegistry()
    reg.register(FilesystemAdapter())
    reg.register(command_mock)
    reg.register(package_mock)
    return reg
