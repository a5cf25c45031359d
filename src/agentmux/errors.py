"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    NEGATIVE = 1
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    NOT_FOUND = 5
    TMUX_ERROR = 6
    UNSUPPORTED = 7
    CANCELLED = 8


@dataclass
class AgentMuxError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


class ConfigurationError(AgentMuxError):
    """Required input is missing or invalid; raised before any side effect."""

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.CONFIG_ERROR, hint=hint)


class UnsupportedOperation(AgentMuxError):
    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.UNSUPPORTED, hint=hint)


class NotFoundError(AgentMuxError):
    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.NOT_FOUND, hint=hint)


class OperationCancelled(AgentMuxError):
    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message, code=ExitCode.CANCELLED, hint=hint)


class BackendError(AgentMuxError):
    """Terminal backend failure, wrapped with the operation that hit it."""

    def __init__(self, operation: str, session: str = "", *, hint: str = "") -> None:
        target = f" (session {session})" if session else ""
        super().__init__(f"tmux {operation} failed{target}.", code=ExitCode.TMUX_ERROR, hint=hint)
        self.operation = operation
        self.session = session


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
