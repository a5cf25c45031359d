"""Capability contract shared by every runtime adapter."""

from __future__ import annotations

import logging as py_logging
import re
import shlex
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, ClassVar

from agentmux.cancel import CancelToken, ensure_token
from agentmux.config import (
    RuntimeAdapterConfig,
    RuntimeRegistryConfig,
    RuntimeTimeouts,
    adapter_config,
    render_resume_command,
)
from agentmux.env import SessionEnv, build_session_env, read_session_env
from agentmux.errors import BackendError, ConfigurationError, NotFoundError, UnsupportedOperation
from agentmux.hooks.emitter import HookEmitter
from agentmux.hooks.events import (
    ErrorEventData,
    HookEventType,
    MessageEventData,
    StartEventData,
    StopEventData,
    build_event,
)
from agentmux.logging import session_logger
from agentmux.retry import RetryPolicy
from agentmux.runtime.backend import SUPPORTED_SHELLS, TerminalBackend
from agentmux.runtime.delivery import DEFAULT_DELIVERY_RETRY, deliver_keystrokes
from agentmux.runtime.persistence import read_persisted_session_id
from agentmux.runtime.readiness import DEFAULT_PROMPT_MARKER, foreground_matches, wait_for_prompt, warmup
from agentmux.runtime.types import (
    Delivery,
    Message,
    ReadinessMode,
    SessionFilter,
    SessionHandle,
    SessionState,
    StartMode,
    StartOptions,
    parse_delivery,
)

logger = py_logging.getLogger(__name__)

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentRuntime:
    """Lifecycle operations for one backing program hosted in tmux sessions.

    Every operation validates its inputs before touching the backend. Readiness
    timeouts are reported as ``False``; backend failures propagate as
    :class:`BackendError` after an ``OnError`` hook event.

    Instances are not safe for concurrent ``start`` calls on the same session
    id; callers owning a session serialize operations on it.
    """

    name: ClassVar[str] = ""
    default_readiness: ClassVar[ReadinessMode] = ReadinessMode.PROMPT
    supported_deliveries: ClassVar[frozenset[Delivery]] = frozenset({Delivery.TMUX})
    running_commands: ClassVar[frozenset[str]] = frozenset()
    account_env_var: ClassVar[str] = ""
    prompt_marker: ClassVar[str] = DEFAULT_PROMPT_MARKER
    default_warmup_seconds: ClassVar[float] = 5.0

    def __init__(
        self,
        backend: TerminalBackend | None,
        *,
        settings: RuntimeAdapterConfig | None = None,
        registry_config: RuntimeRegistryConfig | None = None,
        timeouts: RuntimeTimeouts | None = None,
        hooks: HookEmitter | None = None,
        retry_policy: RetryPolicy = DEFAULT_DELIVERY_RETRY,
        context: SessionEnv | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.backend = backend
        self.registry_config = registry_config
        self.settings = settings or adapter_config(self.name, registry_config)
        self.timeouts = timeouts or RuntimeTimeouts()
        self.hooks = hooks
        self.retry_policy = retry_policy
        self.context = context if context is not None else read_session_env()
        self._clock = clock
        self._now = now
        self._states: dict[str, SessionState] = {}
        self._states_lock = threading.Lock()

    # -- configuration ----------------------------------------------------

    @property
    def readiness_mode(self) -> ReadinessMode:
        if self.settings.ready:
            return ReadinessMode(self.settings.ready)
        return self.default_readiness

    @property
    def default_delivery(self) -> Delivery:
        if self.settings.delivery:
            return Delivery(self.settings.delivery)
        return Delivery.TMUX

    @property
    def warmup_seconds(self) -> float:
        if self.timeouts.warmup is not None:
            return self.timeouts.warmup
        return self.default_warmup_seconds

    def state(self, session_id: str) -> SessionState:
        with self._states_lock:
            return self._states.get(session_id, SessionState.NOT_STARTED)

    def native_env(self, opts: StartOptions) -> dict[str, str]:
        if opts.account_dir and self.account_env_var:
            return {self.account_env_var: opts.account_dir}
        return {}

    def build_launch_line(self, opts: StartOptions) -> str:
        overrides = {**self.settings.env, **opts.env, **self.native_env(opts)}
        env = build_session_env(session_id=opts.session_id, workdir=opts.workdir, overrides=overrides)
        for key in env:
            if not _ENV_NAME.match(key):
                raise ConfigurationError(
                    f"{self.name} runtime got invalid environment name: {key!r}",
                    hint="Use letters, digits and underscores only.",
                )
        parts = ["env", *(shlex.quote(f"{key}={value}") for key, value in env.items()), opts.command.strip()]
        if opts.initial_prompt:
            parts.append(shlex.quote(opts.initial_prompt))
        return " ".join(parts)

    # -- contract ---------------------------------------------------------

    def start(self, opts: StartOptions, *, cancel: CancelToken | None = None) -> SessionHandle:
        backend = self._require_backend()
        session = opts.session_id.strip()
        if not session:
            raise ConfigurationError(f"{self.name} runtime requires session id")
        if not opts.command.strip():
            raise ConfigurationError(f"{self.name} runtime requires command")
        try:
            mode = StartMode(opts.mode)
        except ValueError as exc:
            raise ConfigurationError(f"{self.name} runtime got unknown start mode: {opts.mode!r}") from exc
        minimal = mode == StartMode.MINIMAL
        line = opts.command.strip() if minimal else self.build_launch_line(opts)

        log = session_logger(logger, runtime=self.name, session=session)
        token = ensure_token(cancel)
        with self._reporting(session, opts.workdir, "start"):
            exists = backend.has_session(session)
            if minimal and not exists:
                raise NotFoundError(
                    f"{self.name} runtime session not found: {session}",
                    hint="Minimal mode launches into an existing tmux session.",
                )
            self._transition(session, SessionState.STARTING)
            if not exists:
                backend.new_session(session, workdir=opts.workdir)
            started_at = self._now()
            backend.send_line(session, line)
        log.info("Launch command sent mode=%s", mode.value)

        ready_at = None
        if self._await_startup(session, token):
            ready_at = self._now()

        handle = SessionHandle(
            runtime=self.name,
            session_id=session,
            workdir=opts.workdir,
            started_at=started_at,
            ready_at=ready_at,
        )
        self._emit(
            HookEventType.SESSION_START,
            handle,
            StartEventData(mode=mode.value, ready=ready_at is not None),
        )
        return handle

    def resume(self, handle: SessionHandle, *, cancel: CancelToken | None = None) -> None:
        backend = self._require_backend()
        session = handle.session_id.strip()
        if not session:
            raise ConfigurationError(f"{self.name} runtime requires session id")
        log = session_logger(logger, runtime=self.name, session=session)
        token = ensure_token(cancel)

        with self._reporting(session, handle.workdir, "resume"):
            if not backend.has_session(session):
                raise NotFoundError(f"{self.name} runtime session not found: {session}")
            if self._foreground_running(session):
                log.info("Resume skipped; program already in foreground")
                return
            workdir = handle.workdir or backend.get_pane_workdir(session)

        persisted = read_persisted_session_id(workdir)
        if not persisted:
            raise NotFoundError(
                f"{self.name} runtime resume missing session id in {workdir or '<unknown>'}",
                hint="Start a fresh session instead.",
            )
        resume_line = render_resume_command(self.settings, self.name, persisted)
        if not resume_line:
            raise ConfigurationError(
                f"{self.name} runtime resume command unavailable",
                hint=f"Set a resume template for '{self.name}' in the runtime registry.",
            )

        with self._reporting(session, workdir, "resume"):
            backend.wait_for_shell_ready(session, self.timeouts.shell_ready, cancel=token)
            self._transition(session, SessionState.STARTING)
            backend.send_line(session, resume_line)
        log.info("Resume command sent persisted_id=%s", persisted)
        self._await_startup(session, token)

    def send_message(
        self,
        handle: SessionHandle,
        msg: Message,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        backend = self._require_backend()
        try:
            requested = parse_delivery(msg.delivery)
        except ValueError as exc:
            raise UnsupportedOperation(f"{self.name} runtime does not support delivery {msg.delivery!r}") from exc
        channel = requested or self.default_delivery
        if channel not in self.supported_deliveries:
            accepted = "/".join(sorted(item.value for item in self.supported_deliveries))
            raise UnsupportedOperation(
                f"{self.name} runtime only supports {accepted} delivery",
                hint=f"Requested channel: {channel.value}.",
            )
        session = handle.session_id.strip()
        if not session:
            raise ConfigurationError(f"{self.name} runtime requires session id")

        token = ensure_token(cancel)
        if msg.timeout is not None:
            token = token.derive(msg.timeout)
        with self._reporting(session, handle.workdir, "send-message"):
            deliver_keystrokes(
                backend,
                session,
                msg.text,
                settle_seconds=self.timeouts.settle,
                policy=self.retry_policy,
                cancel=token,
            )
        self._emit(HookEventType.ON_MESSAGE, handle, MessageEventData(delivery=channel.value, length=len(msg.text)))

    def stop(self, handle: SessionHandle, reason: str = "", *, cancel: CancelToken | None = None) -> None:
        del cancel
        backend = self._require_backend()
        session = handle.session_id.strip()
        if not session:
            raise ConfigurationError(f"{self.name} runtime requires session id")
        with self._reporting(session, handle.workdir, "stop"):
            backend.kill_session(session)
        self._transition(session, SessionState.STOPPED)
        session_logger(logger, runtime=self.name, session=session).info("Session stopped reason=%s", reason or "-")
        self._emit(HookEventType.SESSION_STOP, handle, StopEventData(reason=reason))

    def is_ready(self, handle: SessionHandle, *, cancel: CancelToken | None = None) -> bool:
        backend = self._require_backend()
        session = handle.session_id.strip()
        if not session:
            return False
        if self.readiness_mode == ReadinessMode.PROMPT:
            ready = wait_for_prompt(
                backend,
                session,
                timeout=self.timeouts.ready_check,
                marker=self.prompt_marker,
                interval=self.timeouts.poll_interval,
                cancel=cancel,
                clock=self._clock,
            )
        else:
            # Warmup runtimes have no prompt to read; fall back to the foreground command.
            ready = self._foreground_running(session)
        if ready:
            self._transition(session, SessionState.READY)
        return ready

    def detect_running(self, handle: SessionHandle, *, cancel: CancelToken | None = None) -> bool:
        del cancel
        self._require_backend()
        session = handle.session_id.strip()
        if not session:
            return False
        return self._foreground_running(session)

    def list_sessions(
        self,
        session_filter: SessionFilter | None = None,
        *,
        cancel: CancelToken | None = None,
    ) -> list[SessionHandle]:
        del cancel
        backend = self._require_backend()
        scope = session_filter or SessionFilter()
        if scope.runtime and scope.runtime != self.name:
            return []
        if scope.workdir:
            names = backend.find_sessions_by_workdir(scope.workdir)
        else:
            names = backend.list_sessions()
        handles: list[SessionHandle] = []
        seen: set[str] = set()
        for name in names:
            if not name or name in seen:
                continue
            seen.add(name)
            handles.append(SessionHandle(runtime=self.name, session_id=name))
        return handles

    # -- helpers ----------------------------------------------------------

    def _require_backend(self) -> TerminalBackend:
        if self.backend is None:
            raise ConfigurationError(
                f"{self.name} runtime requires tmux",
                hint="Bind a terminal backend when resolving the runtime.",
            )
        return self.backend

    def _foreground_running(self, session: str) -> bool:
        return foreground_matches(self._require_backend(), session, self.running_commands)

    def _await_startup(self, session: str, token: CancelToken) -> bool:
        backend = self._require_backend()
        log = session_logger(logger, runtime=self.name, session=session)
        try:
            backend.wait_for_command(session, SUPPORTED_SHELLS, self.timeouts.start, cancel=token)
        except BackendError as exc:
            # The program may still be booting; readiness below decides.
            log.debug("Foreground command did not change error=%s", exc)

        if self.readiness_mode == ReadinessMode.PROMPT:
            self._transition(session, SessionState.POLLING)
            ready = wait_for_prompt(
                backend,
                session,
                timeout=self.timeouts.start_ready,
                marker=self.prompt_marker,
                interval=self.timeouts.poll_interval,
                cancel=token,
                clock=self._clock,
            )
        else:
            self._transition(session, SessionState.WARMING)
            ready = warmup(self.warmup_seconds, cancel=token)

        self._transition(session, SessionState.READY if ready else SessionState.TIMED_OUT)
        if not ready:
            log.warning("Readiness not confirmed mode=%s", self.readiness_mode.value)
        return ready

    def _transition(self, session: str, state: SessionState) -> None:
        with self._states_lock:
            previous = self._states.get(session, SessionState.NOT_STARTED)
            self._states[session] = state
        logger.debug(
            "runtime-event runtime=%s session=%s step=%s previous=%s",
            self.name,
            session,
            state.value,
            previous.value,
        )

    @contextmanager
    def _reporting(self, session: str, workdir: str, operation: str) -> Iterator[None]:
        try:
            yield
        except BackendError as exc:
            logger.error("Backend failure runtime=%s session=%s operation=%s: %s", self.name, session, operation, exc)
            self._emit(
                HookEventType.ON_ERROR,
                SessionHandle(runtime=self.name, session_id=session, workdir=workdir),
                ErrorEventData(operation=operation, error=str(exc)),
            )
            raise

    def _emit(self, event: HookEventType, handle: SessionHandle, data: Mapping[str, Any]) -> None:
        if self.hooks is None:
            return
        self.hooks.emit(
            build_event(
                event,
                runtime=self.name,
                session_id=handle.session_id,
                workdir=handle.workdir,
                context=self.context,
                data=data,
            )
        )
