"""
Command adapter — run trust-store commands with a restricted search path.

Runs an argv (never through a shell) with ``PATH`` limited to the
given directories. An optional guard command gates execution: the
main command runs only when the guard exits 0 and its output contains
the expected marker. Output is logged only on failure.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time

from trustctl.adapters.base import Adapter, ExecutionContext
from trustctl.core.models.action import Receipt
from trustctl.core.models.profile import DEFAULT_COMMAND_PATH

logger = logging.getLogger(__name__)


class CommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        command (list[str]): The argv to execute.
        path (list[str]): Executable search path (default: /usr/sbin:/usr/bin:/bin).
        only_if (list[str]): Guard argv; the command runs only if it matches.
        only_if_match (str): Text the guard output must contain.
    """

    @property
    def name(self) -> str:
        return "command"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"
        if isinstance(command, str):
            return False, "'command' must be an argv list, not a string"

        only_if = context.action.params.get("only_if")
        if only_if is not None and (isinstance(only_if, str) or not only_if):
            return False, "'only_if' must be a non-empty argv list"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        command = [str(part) for part in params["command"]]
        search_path = list(params.get("path") or DEFAULT_COMMAND_PATH)
        only_if = params.get("only_if")

        if only_if:
            met, detail = self._check_guard(
                [str(part) for part in only_if],
                params.get("only_if_match", ""),
                search_path,
                context.timeout,
            )
            if not met:
                return Receipt.skip(
                    adapter=self.name,
                    action_id=context.action.id,
                    reason=detail["reason"],
                    metadata={"ran": False, "changed": False, **detail},
                )

        result = self._run(command, search_path, context.timeout)
        if result.get("error"):
            logger.error("%s: %s", " ".join(command), result["error"])
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=result["error"],
                metadata={"command": command, "ran": False},
            )

        if result["returncode"] != 0:
            # logoutput on_failure
            logger.error(
                "%s exited with code %d:\n%s",
                " ".join(command), result["returncode"], result["output"],
            )
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=result["output"] or f"Command exited with code {result['returncode']}",
                duration_ms=result["duration_ms"],
                metadata={
                    "command": command,
                    "return_code": result["returncode"],
                    "ran": True,
                },
            )

        logger.debug("%s succeeded", " ".join(command))
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=result["output"],
            changed=True,
            duration_ms=result["duration_ms"],
            metadata={
                "command": command,
                "return_code": 0,
                "ran": True,
            },
        )

    def _check_guard(
        self,
        guard: list[str],
        match: str,
        search_path: list[str],
        timeout: int,
    ) -> tuple[bool, dict]:
        """Evaluate a guard command.

        Returns:
            (met, detail). An unreachable or failing guard is never met.
        """
        result = self._run(guard, search_path, timeout)
        if result.get("error") or result["returncode"] != 0:
            reason = result.get("error") or (
                f"guard exited with code {result['returncode']}"
            )
            logger.warning("Guard %s unusable: %s", " ".join(guard), reason)
            return False, {"guard": "unreachable", "reason": f"Guard failed: {reason}"}

        if match and match not in result["output"]:
            return False, {"guard": "not_met", "reason": f"Guard output lacks {match!r}"}

        return True, {"guard": "met", "reason": ""}

    @staticmethod
    def _run(argv: list[str], search_path: list[str], timeout: int) -> dict:
        """Run an argv with PATH restricted to ``search_path``."""
        path_value = os.pathsep.join(search_path)
        executable = shutil.which(argv[0], path=path_value)
        if executable is None:
            return {"error": f"{argv[0]}: not found in {path_value}"}

        env = dict(os.environ, PATH=path_value, LC_ALL="C")
        start = time.monotonic()
        try:
            proc = subprocess.run(
                [executable, *argv[1:]],
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return {"error": f"{argv[0]} timed out after {timeout}s"}
        except OSError as e:
            return {"error": f"{argv[0]}: {e}"}

        output = "\n".join(
            part for part in (proc.stdout.strip(), proc.stderr.strip()) if part
        )
        return {
            "returncode": proc.returncode,
            "output": output,
            "duration_ms": int((time.monotonic() - start) * 1000),
        }
