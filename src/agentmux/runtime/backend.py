"""Terminal backend capability set consumed by runtime adapters."""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol

from agentmux.cancel import CancelToken

SUPPORTED_SHELLS = frozenset({"bash", "zsh", "sh", "fish", "tcsh", "ksh"})


class TerminalBackend(Protocol):
    def has_session(self, session: str) -> bool: ...

    def new_session(self, session: str, *, workdir: str = "") -> None: ...

    def kill_session(self, session: str) -> None: ...

    def send_literal(self, session: str, text: str) -> None:
        """Type ``text`` into the pane without submitting it."""
        ...

    def send_enter(self, session: str) -> None: ...

    def send_line(self, session: str, line: str) -> None:
        """Type a command line and submit it."""
        ...

    def list_sessions(self) -> list[str]: ...

    def find_sessions_by_workdir(self, workdir: str) -> list[str]: ...

    def get_pane_command(self, session: str) -> str: ...

    def get_pane_workdir(self, session: str) -> str: ...

    def capture_pane_lines(self, session: str, lines: int) -> list[str]: ...

    def wait_for_command(
        self,
        session: str,
        exclude: Collection[str],
        timeout: float,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        """Block until the foreground command is not one of ``exclude``."""
        ...

    def wait_for_shell_ready(
        self,
        session: str,
        timeout: float,
        *,
        cancel: CancelToken | None = None,
    ) -> None: ...
