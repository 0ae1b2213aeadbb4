"""
Filesystem adapter — idempotent directory and file state.

Each operation converges the target to the requested state and
reports whether anything had to change. Writes are atomic (temp file
in the same directory, then rename).
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil
import stat
import tempfile
from pathlib import Path

from trustctl.adapters.base import Adapter, ExecutionContext
from trustctl.core.models.action import Receipt

logger = logging.getLogger(__name__)

_VALID_OPS = {"ensure_directory", "ensure_file", "remove_file"}


class FilesystemAdapter(Adapter):
    """Directory and file convergence with receipts.

    Action params:
        operation (str): One of 'ensure_directory', 'ensure_file', 'remove_file'.
        path (str): Absolute target path.
        owner, group (str): Ownership (names).
        mode (str): Octal mode string, e.g. '0755'.
        purge (bool): Remove directory entries not listed in ``keep``.
        recurse (bool): Let purge remove unmanaged subdirectories too.
        keep (list[str]): Entry names that purge leaves alone.
        content (str): File content (for 'ensure_file').
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"

        path = params.get("path", "")
        if not path:
            return False, "Missing required param: 'path'"
        if not Path(path).is_absolute():
            return False, f"Path must be absolute: {path}"

        if operation == "ensure_file" and "content" not in params:
            return False, "Missing required param: 'content' for ensure_file operation"

        mode = params.get("mode")
        if mode is not None:
            try:
                int(str(mode), 8)
            except ValueError:
                return False, f"Invalid mode: {mode!r}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        target = Path(context.action.params["path"])

        try:
            if operation == "ensure_directory":
                return self._ensure_directory(context, target)
            elif operation == "ensure_file":
                return self._ensure_file(context, target)
            elif operation == "remove_file":
                return self._remove_file(context, target)
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Unknown operation: {operation}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    # ── Operations ──────────────────────────────────────────────

    def _ensure_directory(self, ctx: ExecutionContext, target: Path) -> Receipt:
        params = ctx.action.params
        changes: list[str] = []

        if target.exists() and not target.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not a directory: {target}",
            )

        if not target.exists():
            target.mkdir(parents=True)
            changes.append("created")

        changes.extend(_converge_attributes(target, params))

        purged: list[str] = []
        if params.get("purge"):
            purged = _purge(target, set(params.get("keep") or []), bool(params.get("recurse")))
            if purged:
                changes.append("purged")

        for change in changes:
            logger.info("%s: %s", target, change)

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=", ".join(changes),
            changed=bool(changes),
            metadata={"path": str(target), "changes": changes, "purged": purged},
        )

    def _ensure_file(self, ctx: ExecutionContext, target: Path) -> Receipt:
        params = ctx.action.params
        content = params["content"]
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        changes: list[str] = []

        if target.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Is a directory: {target}",
            )

        current = target.read_bytes() if target.is_file() else None
        if current != data:
            _atomic_write(target, data)
            changes.append("created" if current is None else "content")

        changes.extend(_converge_attributes(target, params))

        for change in changes:
            logger.info("%s: %s", target, change)

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=", ".join(changes),
            changed=bool(changes),
            metadata={"path": str(target), "changes": changes, "size": len(data)},
        )

    def _remove_file(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if target.is_dir() and not target.is_symlink():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Is a directory: {target}",
            )

        removed = target.exists() or target.is_symlink()
        if removed:
            target.unlink()
            logger.info("%s: removed", target)

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output="removed" if removed else "",
            changed=removed,
            metadata={"path": str(target)},
        )


# ── Helpers ─────────────────────────────────────────────────────


def _converge_attributes(target: Path, params: dict) -> list[str]:
    """Bring owner, group and mode in line. Returns what changed."""
    changes: list[str] = []
    st = target.stat()

    uid = pwd.getpwnam(params["owner"]).pw_uid if params.get("owner") else -1
    gid = grp.getgrnam(params["group"]).gr_gid if params.get("group") else -1
    chown_uid = uid if uid != -1 and uid != st.st_uid else -1
    chown_gid = gid if gid != -1 and gid != st.st_gid else -1
    if chown_uid != -1 or chown_gid != -1:
        os.chown(target, chown_uid, chown_gid)
        if chown_uid != -1:
            changes.append("owner")
        if chown_gid != -1:
            changes.append("group")

    if params.get("mode") is not None:
        wanted = int(str(params["mode"]), 8)
        # chown may clear setuid/setgid bits
        if stat.S_IMODE(target.stat().st_mode) != wanted:
            os.chmod(target, wanted)
            changes.append("mode")

    return changes


def _purge(target: Path, keep: set[str], recurse: bool) -> list[str]:
    """Remove entries of ``target`` not named in ``keep``."""
    purged: list[str] = []
    for entry in sorted(target.iterdir()):
        if entry.name in keep:
            continue
        if entry.is_dir() and not entry.is_symlink():
            if not recurse:
                continue
            shutil.rmtree(entry)
        else:
            entry.unlink()
        purged.append(entry.name)
        logger.info("Purged unmanaged entry %s", entry)
    return purged


def _atomic_write(path: Path, data: bytes) -> None:
    """Write-to-temp-then-rename in the target directory."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
