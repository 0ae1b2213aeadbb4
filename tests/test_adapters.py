"""
Tests for adapter protocol, registry, mock, and system adapters.
"""

import os
import stat
from pathlib import Path

import pytest

from trustctl.adapters.base import ExecutionContext
from trustctl.adapters.mock import MockAdapter
from trustctl.adapters.registry import AdapterRegistry, default_registry
from trustctl.adapters.system.command import CommandAdapter
from trustctl.adapters.system.filesystem import FilesystemAdapter
from trustctl.adapters.system.package import PackageAdapter
from trustctl.core.models.action import Action, Receipt


def _ctx(action_id: str, adapter: str, **params) -> ExecutionContext:
    action = Action(id=action_id, adapter=adapter, params=params)
    return ExecutionContext(action=action, params=params, timeout=10)


# ── Mock Adapter Tests ───────────────────────────────────────────────


class TestMockAdapter:
    def test_default_unchanged_success(self):
        mock = MockAdapter(adapter_name="test-mock")
        receipt = mock.execute(_ctx("op-1", "test-mock"))
        assert receipt.ok
        assert not receipt.changed
        assert mock.call_count == 1

    def test_set_changed(self):
        mock = MockAdapter()
        mock.set_changed("op-1")
        assert mock.execute(_ctx("op-1", "mock")).changed
        mock.set_changed("op-1", False)
        assert not mock.execute(_ctx("op-1", "mock")).changed

    def test_custom_response_is_copied(self):
        mock = MockAdapter()
        mock.set_response("op-1", Receipt.success(adapter="mock", action_id="op-1", output="custom"))
        first = mock.execute(_ctx("op-1", "mock"))
        first.metadata["tampered"] = True
        second = mock.execute(_ctx("op-1", "mock"))
        assert second.output == "custom"
        assert "tampered" not in second.metadata

    def test_set_failure(self):
        mock = MockAdapter()
        mock.set_failure("op-fail", error="Intentional failure")
        receipt = mock.execute(_ctx("op-fail", "mock"))
        assert receipt.failed
        assert "Intentional failure" in receipt.error

    def test_calls_for_and_reset(self):
        mock = MockAdapter()
        for i in range(3):
            mock.execute(_ctx(f"op-{i % 2}", "mock"))
        assert len(mock.calls_for("op-0")) == 2
        mock.reset()
        assert mock.call_count == 0


# ── Registry Tests ───────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_register_and_get(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="command")
        registry.register(mock)
        assert registry.get("command") is mock
        assert registry.get("package") is None

    def test_register_replaces(self):
        registry = AdapterRegistry()
        registry.register(MockAdapter(adapter_name="command"))
        replacement = MockAdapter(adapter_name="command")
        registry.register(replacement)
        assert registry.get("command") is replacement

    def test_missing_adapter_fails(self):
        receipt = AdapterRegistry().execute_action(Action(id="x", adapter="nope"))
        assert receipt.failed
        assert "No adapter registered" in receipt.error

    def test_unavailable_adapter_fails(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="package", available=False)
        registry.register(mock)
        receipt = registry.execute_action(Action(id="package:ca-certificates", adapter="package"))
        assert receipt.failed
        assert "not available" in receipt.error
        assert mock.call_count == 0

    def test_validation_failure(self):
        registry = AdapterRegistry()
        registry.register(CommandAdapter())
        receipt = registry.execute_action(Action(id="x", adapter="command"))
        assert receipt.failed
        assert "Validation failed" in receipt.error

    def test_dry_run_skips(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="command")
        registry.register(mock)
        receipt = registry.execute_action(Action(id="x", adapter="command"), dry_run=True)
        assert receipt.status == "skipped"
        assert receipt.metadata["dry_run"] is True
        assert mock.call_count == 0

    def test_mock_mode_never_dispatches(self):
        registry = AdapterRegistry(mock_mode=True)
        mock = MockAdapter(adapter_name="filesystem")
        registry.register(mock)
        receipt = registry.execute_action(Action(id="x", adapter="filesystem"))
        assert receipt.ok
        assert receipt.metadata["mock"] is True
        assert not receipt.changed
        assert mock.call_count == 0

    def test_timeout_forwarded(self):
        registry = AdapterRegistry()
        mock = MockAdapter(adapter_name="command")
        registry.register(mock)
        registry.execute_action(Action(id="x", adapter="command"), timeout=42)
        assert mock.call_log[0].timeout == 42

    def test_default_registry(self):
        registry = default_registry(package_manager="apt")
        assert isinstance(registry.get("filesystem"), FilesystemAdapter)
        assert isinstance(registry.get("command"), CommandAdapter)
        assert isinstance(registry.get("package"), PackageAdapter)
        assert registry.get("package").manager == "apt"


# ── Command Adapter Tests ────────────────────────────────────────────


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    """Directory of fake executables used as the command search path."""
    path = tmp_path / "bin"
    path.mkdir()
    return path


def _script(bin_dir: Path, name: str, body: str) -> Path:
    script = bin_dir / name
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


class TestCommandAdapter:
    def test_validate_requires_argv(self):
        adapter = CommandAdapter()
        assert adapter.validate(_ctx("x", "command"))[0] is False
        valid, error = adapter.validate(_ctx("x", "command", command="update-ca-trust extract"))
        assert not valid
        assert "argv" in error
        assert adapter.validate(_ctx("x", "command", command=["true"], only_if=[]))[0] is False
        assert adapter.validate(_ctx("x", "command", command=["true"]))[0] is True

    def test_runs_from_search_path(self, bin_dir: Path):
        _script(bin_dir, "update-trust", 'echo "rebuilt $1"')
        receipt = CommandAdapter().execute(
            _ctx("x", "command", command=["update-trust", "extract"], path=[str(bin_dir)])
        )
        assert receipt.ok
        assert receipt.changed
        assert receipt.metadata["ran"] is True
        assert receipt.output == "rebuilt extract"

    def test_path_is_restricted(self, bin_dir: Path):
        _script(bin_dir, "show-path", 'echo "$PATH"')
        receipt = CommandAdapter().execute(
            _ctx("x", "command", command=["show-path"], path=[str(bin_dir)])
        )
        assert receipt.output == str(bin_dir)

    def test_not_on_search_path(self, bin_dir: Path):
        receipt = CommandAdapter().execute(
            _ctx("x", "command", command=["update-trust"], path=[str(bin_dir)])
        )
        assert receipt.failed
        assert "not found" in receipt.error
        assert receipt.metadata["ran"] is False

    def test_nonzero_exit(self, bin_dir: Path):
        _script(bin_dir, "broken", 'echo "no space left" >&2\nexit 3')
        receipt = CommandAdapter().execute(
            _ctx("x", "command", command=["broken"], path=[str(bin_dir)])
        )
        assert receipt.failed
        assert receipt.error == "no space left"
        assert receipt.metadata["return_code"] == 3

    def test_guard_met(self, bin_dir: Path):
        _script(bin_dir, "check", 'echo "PEM/JAVA Status: DISABLED."')
        _script(bin_dir, "enable", "echo enabled")
        receipt = CommandAdapter().execute(
            _ctx(
                "x", "command",
                command=["enable"], path=[str(bin_dir)],
                only_if=["check"], only_if_match="DISABLED",
            )
        )
        assert receipt.ok
        assert receipt.metadata["ran"] is True

    def test_guard_not_met(self, bin_dir: Path):
        _script(bin_dir, "check", 'echo "PEM/JAVA Status: ENABLED."')
        _script(bin_dir, "enable", "echo enabled")
        receipt = CommandAdapter().execute(
            _ctx(
                "x", "command",
                command=["enable"], path=[str(bin_dir)],
                only_if=["check"], only_if_match="DISABLED",
            )
        )
        assert receipt.status == "skipped"
        assert receipt.metadata["guard"] == "not_met"
        assert receipt.metadata["ran"] is False
        assert not receipt.changed

    def test_guard_unreachable(self, bin_dir: Path):
        _script(bin_dir, "enable", "echo enabled")
        receipt = CommandAdapter().execute(
            _ctx(
                "x", "command",
                command=["enable"], path=[str(bin_dir)],
                only_if=["check"], only_if_match="DISABLED",
            )
        )
        assert receipt.status == "skipped"
        assert receipt.metadata["guard"] == "unreachable"

    def test_guard_nonzero_exit_is_unreachable(self, bin_dir: Path):
        _script(bin_dir, "check", "echo DISABLED\nexit 1")
        _script(bin_dir, "enable", "echo enabled")
        receipt = CommandAdapter().execute(
            _ctx(
                "x", "command",
                command=["enable"], path=[str(bin_dir)],
                only_if=["check"], only_if_match="DISABLED",
            )
        )
        assert receipt.metadata["guard"] == "unreachable"

    def test_timeout(self, bin_dir: Path):
        _script(bin_dir, "slow", "exec sleep 5")
        # sleep must resolve too; it lives outside the fake bin
        action = Action(
            id="x", adapter="command",
            params={"command": ["slow"], "path": [str(bin_dir), "/bin", "/usr/bin"]},
        )
        receipt = CommandAdapter().execute(ExecutionContext(action=action, timeout=1))
        assert receipt.failed
        assert "timed out" in receipt.error


# ── Filesystem Adapter Tests ─────────────────────────────────────────


class TestFilesystemValidation:
    def test_unknown_operation(self):
        valid, error = FilesystemAdapter().validate(_ctx("x", "filesystem", operation="chmod", path="/tmp"))
        assert not valid
        assert "Unknown operation" in error

    def test_relative_path(self):
        valid, error = FilesystemAdapter().validate(
            _ctx("x", "filesystem", operation="ensure_directory", path="anchors")
        )
        assert not valid
        assert "absolute" in error

    def test_bad_mode(self):
        valid, _ = FilesystemAdapter().validate(
            _ctx("x", "filesystem", operation="ensure_directory", path="/tmp/x", mode="rwx")
        )
        assert not valid

    def test_ensure_file_needs_content(self):
        valid, _ = FilesystemAdapter().validate(
            _ctx("x", "filesystem", operation="ensure_file", path="/tmp/x")
        )
        assert not valid


class TestFilesystemDirectory:
    def test_create(self, tmp_path: Path, host_user: str, host_group: str):
        target = tmp_path / "anchors"
        receipt = FilesystemAdapter().execute(
            _ctx(
                "d", "filesystem", operation="ensure_directory", path=str(target),
                owner=host_user, group=host_group, mode="0750",
            )
        )
        assert receipt.ok
        assert receipt.changed
        assert "created" in receipt.metadata["changes"]
        assert stat.S_IMODE(target.stat().st_mode) == 0o750

    def test_converged_is_unchanged(self, tmp_path: Path, host_user: str, host_group: str):
        target = tmp_path / "anchors"
        target.mkdir()
        os.chmod(target, 0o755)
        receipt = FilesystemAdapter().execute(
            _ctx(
                "d", "filesystem", operation="ensure_directory", path=str(target),
                owner=host_user, group=host_group, mode="0755",
            )
        )
        assert receipt.ok
        assert not receipt.changed

    def test_mode_drift(self, tmp_path: Path):
        target = tmp_path / "anchors"
        target.mkdir()
        os.chmod(target, 0o700)
        receipt = FilesystemAdapter().execute(
            _ctx("d", "filesystem", operation="ensure_directory", path=str(target), mode="0755")
        )
        assert receipt.metadata["changes"] == ["mode"]

    def test_not_a_directory(self, tmp_path: Path):
        target = tmp_path / "anchors"
        target.write_text("oops")
        receipt = FilesystemAdapter().execute(
            _ctx("d", "filesystem", operation="ensure_directory", path=str(target))
        )
        assert receipt.failed

    def test_purge(self, tmp_path: Path):
        target = tmp_path / "anchors"
        target.mkdir()
        (target / "keep.crt").write_text("k")
        (target / "stray.crt").write_text("s")
        (target / "nested").mkdir()
        (target / "nested" / "deep.crt").write_text("d")

        receipt = FilesystemAdapter().execute(
            _ctx(
                "d", "filesystem", operation="ensure_directory", path=str(target),
                purge=True, recurse=True, keep=["keep.crt"],
            )
        )
        assert receipt.changed
        assert sorted(receipt.metadata["purged"]) == ["nested", "stray.crt"]
        assert [p.name for p in target.iterdir()] == ["keep.crt"]

    def test_purge_without_recurse_keeps_subdirs(self, tmp_path: Path):
        target = tmp_path / "anchors"
        target.mkdir()
        (target / "nested").mkdir()
        FilesystemAdapter().execute(
            _ctx("d", "filesystem", operation="ensure_directory", path=str(target), purge=True, keep=[])
        )
        assert (target / "nested").is_dir()


class TestFilesystemFile:
    def test_create_then_idempotent(self, tmp_path: Path):
        target = tmp_path / "ca1.crt"
        ctx = _ctx("f", "filesystem", operation="ensure_file", path=str(target), content=b"PEM", mode="0644")
        first = FilesystemAdapter().execute(ctx)
        second = FilesystemAdapter().execute(ctx)
        assert first.changed
        assert "created" in first.metadata["changes"]
        assert not second.changed
        assert target.read_bytes() == b"PEM"
        assert stat.S_IMODE(target.stat().st_mode) == 0o644

    def test_content_drift(self, tmp_path: Path):
        target = tmp_path / "ca1.crt"
        target.write_bytes(b"old")
        os.chmod(target, 0o644)
        receipt = FilesystemAdapter().execute(
            _ctx("f", "filesystem", operation="ensure_file", path=str(target), content="new", mode="0644")
        )
        assert receipt.metadata["changes"][0] == "content"
        assert target.read_text() == "new"

    def test_no_temp_files_left(self, tmp_path: Path):
        target = tmp_path / "ca1.crt"
        FilesystemAdapter().execute(
            _ctx("f", "filesystem", operation="ensure_file", path=str(target), content="x")
        )
        assert [p.name for p in tmp_path.iterdir()] == ["ca1.crt"]

    def test_remove(self, tmp_path: Path):
        target = tmp_path / "ca1.crt"
        target.write_text("x")
        ctx = _ctx("f", "filesystem", operation="remove_file", path=str(target))
        assert FilesystemAdapter().execute(ctx).changed
        assert not target.exists()
        again = FilesystemAdapter().execute(ctx)
        assert again.ok
        assert not again.changed
