"""Lifecycle hook emission to a JSONL log and external commands."""

from __future__ import annotations

import logging as py_logging
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from agentmux.hooks.events import HookEvent
from agentmux.hooks.runner import HookRunner, HookRunResult

logger = py_logging.getLogger(__name__)


class HookEmitter:
    def __init__(
        self,
        *,
        log_path: str | Path | None = None,
        commands: Sequence[str] = (),
        runner: HookRunner | None = None,
        process_runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.log_path = Path(log_path).expanduser() if log_path is not None else None
        self.commands = list(commands)
        self.runner = runner or HookRunner()
        self._process_runner = process_runner

    def emit(self, event: HookEvent) -> HookRunResult | None:
        payload = event.to_json()
        logger.debug("hook-event event=%s session=%s", event.event.value, event.session_id)
        if self.log_path is not None:
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                with self.log_path.open("a", encoding="utf-8") as handle:
                    handle.write(payload + "\n")
            except OSError as exc:
                logger.warning("Hook log write failed path=%s error=%s", self.log_path, exc)
        if not self.commands:
            return None
        result = self.runner.run(
            event=event.event.value,
            commands=self.commands,
            payload=payload,
            runner=self._process_runner,
        )
        if result.has_failures:
            logger.warning("Hook commands reported failures event=%s", event.event.value)
        return result
