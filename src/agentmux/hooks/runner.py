"""External hook command runner."""

from __future__ import annotations

import logging as py_logging
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

logger = py_logging.getLogger(__name__)


@dataclass(frozen=True)
class HookExecution:
    command: str
    success: bool
    returncode: int
    output: str


@dataclass
class HookRunResult:
    event: str
    executions: list[HookExecution]

    @property
    def has_failures(self) -> bool:
        return any(not execution.success for execution in self.executions)


class HookRunner:
    """Runs hook commands with the event JSON on stdin."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        *,
        trusted_config: bool = True,
        allow_command_prefixes: list[str] | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.trusted_config = trusted_config
        self.allow_command_prefixes = [item.strip() for item in (allow_command_prefixes or []) if item.strip()]

    def _is_command_allowed(self, command: str) -> bool:
        if self.trusted_config:
            return True
        try:
            argv = shlex.split(command)
        except ValueError:
            return False
        if not argv or not self.allow_command_prefixes:
            return False
        return argv[0] in set(self.allow_command_prefixes)

    def run(
        self,
        *,
        event: str,
        commands: list[str],
        payload: str,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> HookRunResult:
        executions: list[HookExecution] = []
        logger.debug("Running %s hook commands for event=%s", len(commands), event)
        for command in commands:
            if not self._is_command_allowed(command):
                logger.warning("Hook command blocked by policy event=%s command=%s", event, command)
                executions.append(
                    HookExecution(
                        command=command,
                        success=False,
                        returncode=126,
                        output="Command blocked by hook trust policy.",
                    )
                )
                continue
            try:
                completed = runner(
                    ["bash", "-lc", command],
                    shell=False,
                    input=payload,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                    check=False,
                )
            except subprocess.TimeoutExpired:
                logger.error("Hook command timed out event=%s command=%s", event, command)
                executions.append(
                    HookExecution(command=command, success=False, returncode=124, output="Command timed out.")
                )
                continue
            except OSError as exc:
                logger.error("Hook command could not start event=%s command=%s error=%s", event, command, exc)
                executions.append(HookExecution(command=command, success=False, returncode=127, output=str(exc)))
                continue
            success = completed.returncode == 0
            if not success:
                logger.warning(
                    "Hook command failed event=%s returncode=%s command=%s",
                    event,
                    completed.returncode,
                    command,
                )
            executions.append(
                HookExecution(
                    command=command,
                    success=success,
                    returncode=completed.returncode,
                    output=f"{completed.stdout}{completed.stderr}".strip(),
                )
            )
        return HookRunResult(event=event, executions=executions)
