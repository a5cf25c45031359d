"""Subprocess-driven tmux implementation of the terminal backend."""

from __future__ import annotations

import logging as py_logging
import subprocess
import time
from collections.abc import Callable, Collection, Sequence

from agentmux.cancel import CancelToken, ensure_token
from agentmux.errors import BackendError
from agentmux.runtime.backend import SUPPORTED_SHELLS

logger = py_logging.getLogger(__name__)

_FIELD_SEP = "\t"
_MISSING_SESSION_MARKERS = (
    "can't find session",
    "can't find pane",
    "no server running",
    "error connecting",
    "session not found",
)
_WAIT_POLL_SECONDS = 0.1


def _is_missing_session(stderr: str) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in _MISSING_SESSION_MARKERS)


def _exact_target(session: str) -> str:
    # "=" disables tmux prefix matching on session names.
    return f"={session}"


def _pane_target(session: str) -> str:
    # Active pane of exactly this session; a bare name would prefix-match another one.
    return f"={session}:"


class TmuxBackend:
    def __init__(
        self,
        *,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        socket: str | None = None,
        timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner
        self.socket = socket
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    def _command(self, args: Sequence[str]) -> list[str]:
        cmd = ["tmux"]
        if self.socket:
            cmd.extend(["-S", self.socket])
        cmd.extend(args)
        return cmd

    def _exec(self, operation: str, args: Sequence[str], *, session: str = "") -> subprocess.CompletedProcess:
        cmd = self._command(args)
        logger.debug("Running tmux operation=%s command=%s", operation, cmd)
        try:
            return self.runner(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("tmux command timed out operation=%s session=%s", operation, session)
            raise BackendError(operation, session, hint="tmux did not answer in time.") from exc
        except OSError as exc:
            logger.error("tmux could not be executed operation=%s error=%s", operation, exc)
            raise BackendError(operation, session, hint="Install tmux and ensure it is in PATH.") from exc

    def _run(self, operation: str, args: Sequence[str], *, session: str = "") -> str:
        completed = self._exec(operation, args, session=session)
        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            logger.warning(
                "tmux command failed operation=%s session=%s returncode=%s stderr=%s",
                operation,
                session,
                completed.returncode,
                stderr,
            )
            raise BackendError(operation, session, hint=stderr or "Inspect tmux server state.")
        return completed.stdout or ""

    def has_session(self, session: str) -> bool:
        completed = self._exec("has-session", ["has-session", "-t", _exact_target(session)], session=session)
        if completed.returncode == 0:
            return True
        stderr = (completed.stderr or "").strip()
        if _is_missing_session(stderr) or not stderr:
            return False
        raise BackendError("has-session", session, hint=stderr)

    def new_session(self, session: str, *, workdir: str = "") -> None:
        args = ["new-session", "-d", "-s", session]
        if workdir:
            args.extend(["-c", workdir])
        self._run("new-session", args, session=session)

    def kill_session(self, session: str) -> None:
        self._run("kill-session", ["kill-session", "-t", _exact_target(session)], session=session)

    def send_literal(self, session: str, text: str) -> None:
        self._run("send-keys", ["send-keys", "-t", _pane_target(session), "-l", "--", text], session=session)

    def send_enter(self, session: str) -> None:
        self._run("send-keys", ["send-keys", "-t", _pane_target(session), "Enter"], session=session)

    def send_line(self, session: str, line: str) -> None:
        self.send_literal(session, line)
        self.send_enter(session)

    def list_sessions(self) -> list[str]:
        completed = self._exec("list-sessions", ["list-sessions", "-F", "#{session_name}"])
        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            if _is_missing_session(stderr):
                return []
            raise BackendError("list-sessions", hint=stderr or "Inspect tmux server state.")
        return [line.strip() for line in (completed.stdout or "").splitlines() if line.strip()]

    def find_sessions_by_workdir(self, workdir: str) -> list[str]:
        completed = self._exec(
            "list-panes",
            ["list-panes", "-a", "-F", f"#{{session_name}}{_FIELD_SEP}#{{pane_current_path}}"],
        )
        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            if _is_missing_session(stderr):
                return []
            raise BackendError("list-panes", hint=stderr or "Inspect tmux server state.")
        matches: list[str] = []
        for line in (completed.stdout or "").splitlines():
            name, sep, path = line.partition(_FIELD_SEP)
            if not sep or not name:
                continue
            if path == workdir and name not in matches:
                matches.append(name)
        return matches

    def _display(self, operation: str, session: str, fmt: str) -> str:
        args = ["display-message", "-p", "-t", _pane_target(session), fmt]
        return self._run(operation, args, session=session).strip()

    def get_pane_command(self, session: str) -> str:
        return self._display("pane-command", session, "#{pane_current_command}")

    def get_pane_workdir(self, session: str) -> str:
        return self._display("pane-workdir", session, "#{pane_current_path}")

    def capture_pane_lines(self, session: str, lines: int) -> list[str]:
        output = self._run(
            "capture-pane",
            ["capture-pane", "-p", "-t", _pane_target(session), "-S", f"-{lines}"],
            session=session,
        )
        captured = output.splitlines()
        while captured and not captured[-1].strip():
            captured.pop()
        return captured[-lines:] if lines > 0 else []

    def _poll(
        self,
        operation: str,
        session: str,
        timeout: float,
        cancel: CancelToken | None,
        done: Callable[[str], bool],
    ) -> None:
        token = ensure_token(cancel)
        deadline = self._clock() + timeout
        while True:
            command = self.get_pane_command(session)
            if done(command):
                return
            left = deadline - self._clock()
            if left <= 0 or not token.sleep(min(_WAIT_POLL_SECONDS, left)):
                break
        raise BackendError(operation, session, hint=f"Condition not met within {timeout:g}s.")

    def wait_for_command(
        self,
        session: str,
        exclude: Collection[str],
        timeout: float,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        excluded = set(exclude)
        self._poll("wait-for-command", session, timeout, cancel, lambda cmd: bool(cmd) and cmd not in excluded)

    def wait_for_shell_ready(
        self,
        session: str,
        timeout: float,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        self._poll("wait-for-shell", session, timeout, cancel, lambda cmd: cmd in SUPPORTED_SHELLS)
