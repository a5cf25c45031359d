"""Readiness detection strategies.

Readiness is inferred from indirect signals: the captured pane text (prompt
strategy) or a fixed warmup delay (warmup strategy). Both are heuristics kept
until the backing programs expose a structured handshake; a program wrapped by
an intermediate shell can defeat the foreground-command check.
"""

from __future__ import annotations

import logging as py_logging
import time
from collections.abc import Callable, Collection, Iterable

from agentmux.cancel import CancelToken, ensure_token
from agentmux.errors import BackendError
from agentmux.runtime.backend import TerminalBackend

logger = py_logging.getLogger(__name__)

DEFAULT_PROMPT_MARKER = ">"
DEFAULT_CAPTURE_LINES = 10
DEFAULT_POLL_INTERVAL = 0.2


def line_has_prompt(line: str, marker: str = DEFAULT_PROMPT_MARKER) -> bool:
    trimmed = line.strip()
    return trimmed == marker or trimmed.startswith(f"{marker} ")


def contains_prompt(lines: Iterable[str], marker: str = DEFAULT_PROMPT_MARKER) -> bool:
    return any(line_has_prompt(line, marker) for line in lines)


def wait_for_prompt(
    backend: TerminalBackend,
    session: str,
    *,
    timeout: float,
    marker: str = DEFAULT_PROMPT_MARKER,
    interval: float = DEFAULT_POLL_INTERVAL,
    capture_lines: int = DEFAULT_CAPTURE_LINES,
    cancel: CancelToken | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll the pane until a prompt line shows up.

    Returns ``False`` when the timeout elapses or the wait is cancelled; capture
    failures count as "not yet" and polling continues.
    """
    token = ensure_token(cancel)
    deadline = clock() + timeout
    while clock() < deadline:
        try:
            lines = backend.capture_pane_lines(session, capture_lines)
        except BackendError as exc:
            logger.debug("Pane capture failed while polling session=%s error=%s", session, exc)
        else:
            if contains_prompt(lines, marker):
                return True
        left = deadline - clock()
        if left <= 0:
            break
        if not token.sleep(min(interval, left)):
            logger.debug("Prompt polling cancelled session=%s", session)
            return False
    logger.debug("Prompt not detected within %ss session=%s", timeout, session)
    return False


def warmup(delay: float, *, cancel: CancelToken | None = None) -> bool:
    """Wait out a fixed warmup; ``True`` means readiness is assumed, not confirmed."""
    if delay <= 0:
        return not ensure_token(cancel).cancelled
    return ensure_token(cancel).sleep(delay)


def foreground_matches(backend: TerminalBackend, session: str, allowed: Collection[str]) -> bool:
    """Heuristic liveness check on the pane's foreground command name."""
    if not backend.has_session(session):
        return False
    return backend.get_pane_command(session) in allowed
