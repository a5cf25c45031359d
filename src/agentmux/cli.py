"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from .config import RuntimeRegistryConfig, load_registry_or_default, resolve_runtime_name
from .errors import AgentMuxError, ConfigurationError, ExitCode, user_facing_error
from .hooks.emitter import HookEmitter
from .hooks.runner import HookRunner
from .logging import configure_logging, default_log_path
from .runtime.backend import TerminalBackend
from .runtime.base import AgentRuntime
from .runtime.registry import RuntimeRegistry, build_default_registry
from .runtime.types import Delivery, Message, SessionFilter, SessionHandle, StartMode, StartOptions

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
_VALID_DELIVERY = tuple(item.value for item in Delivery)

BackendFactory = Callable[[], TerminalBackend]


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _env_pair_type(value: str) -> tuple[str, str]:
    key, sep, item = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError("--env expects NAME=VALUE")
    return key.strip(), item


def _positive_float_type(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--timeout must be a number") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("--timeout must be positive")
    return parsed


def _add_session_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("session")
    parser.add_argument("--runtime", default=None)
    parser.add_argument("--workdir", default="")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentmux")
    parser.add_argument("--config", type=Path, default=None, help="Runtime registry JSON file")
    parser.add_argument("--log-level", type=_log_level_type, default="INFO")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--hook-log", type=Path, default=None, help="Append lifecycle events as JSON lines")
    parser.add_argument("--hook-command", action="append", default=[], help="Command receiving event JSON on stdin")
    parser.add_argument(
        "--hook-allow",
        action="append",
        default=[],
        metavar="PROGRAM",
        help="Only run hook commands whose program is listed; repeat for more",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("runtimes", help="List registered runtimes")

    start = sub.add_parser("start", help="Launch an agent in a tmux session")
    start.add_argument("session")
    start.add_argument("--runtime", default=None)
    start.add_argument("--workdir", default="")
    start.add_argument("--launch", default="", help="Launch command; defaults to the runtime's binary")
    start.add_argument("--prompt", default="")
    start.add_argument("--account-dir", default="")
    start.add_argument("--env", type=_env_pair_type, action="append", default=[])
    start.add_argument("--minimal", action="store_true", help="Type the command into an existing session only")

    send = sub.add_parser("send", help="Deliver a message to a session")
    _add_session_args(send)
    send.add_argument("message")
    send.add_argument("--delivery", choices=_VALID_DELIVERY, default=None)
    send.add_argument("--timeout", type=_positive_float_type, default=None)

    for name, help_text in (
        ("ready", "Check whether a session accepts input"),
        ("running", "Check whether the agent is in the foreground"),
        ("resume", "Resume a persisted agent session"),
    ):
        _add_session_args(sub.add_parser(name, help=help_text))

    stop = sub.add_parser("stop", help="Kill a session")
    _add_session_args(stop)
    stop.add_argument("--reason", default="")

    ls = sub.add_parser("ls", help="List sessions")
    ls.add_argument("--runtime", default=None)
    ls.add_argument("--workdir", default="")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_hook_emitter(namespace: argparse.Namespace) -> HookEmitter:
    # Any --hook-allow entry switches hook commands to the allow-list policy.
    runner = HookRunner(
        trusted_config=not namespace.hook_allow,
        allow_command_prefixes=namespace.hook_allow,
    )
    return HookEmitter(log_path=namespace.hook_log, commands=namespace.hook_command, runner=runner)


def _default_backend() -> TerminalBackend:
    from agentmux.tmux.backend import TmuxBackend

    return TmuxBackend()


def _resolve_runtime(
    namespace: argparse.Namespace,
    registry: RuntimeRegistry,
    config: RuntimeRegistryConfig,
    backend: TerminalBackend,
) -> AgentRuntime:
    name = namespace.runtime or resolve_runtime_name(namespace.workdir or None, config)
    return registry.get(name, backend)


def _handle(namespace: argparse.Namespace, runtime: AgentRuntime) -> SessionHandle:
    return SessionHandle(runtime=runtime.name, session_id=namespace.session, workdir=namespace.workdir)


def run_command(
    namespace: argparse.Namespace,
    *,
    registry: RuntimeRegistry,
    config: RuntimeRegistryConfig,
    backend: TerminalBackend,
) -> int:
    if namespace.command == "runtimes":
        default = config.default or "claude"
        for name in sorted(registry.names()):
            marker = "*" if name == default else " "
            print(f"{marker} {name}")
        return int(ExitCode.SUCCESS)

    if namespace.command == "ls":
        name = namespace.runtime or resolve_runtime_name(None, config)
        session_filter = SessionFilter(runtime=namespace.runtime or "", workdir=namespace.workdir)
        for handle in registry.get(name, backend).list_sessions(session_filter):
            print(handle.session_id)
        return int(ExitCode.SUCCESS)

    runtime = _resolve_runtime(namespace, registry, config, backend)

    if namespace.command == "start":
        launch = namespace.launch or runtime.settings.launch_command(runtime.name)
        if not launch:
            raise ConfigurationError(f"No launch command for runtime {runtime.name}")
        handle = runtime.start(
            StartOptions(
                session_id=namespace.session,
                command=launch,
                workdir=namespace.workdir,
                runtime_name=runtime.name,
                account_dir=namespace.account_dir,
                env=dict(namespace.env),
                initial_prompt=namespace.prompt,
                mode=StartMode.MINIMAL if namespace.minimal else StartMode.TMUX,
            )
        )
        state = "ready" if handle.ready_at else "started (readiness unconfirmed)"
        print(f"{handle.runtime} {handle.session_id} {state}")
        return int(ExitCode.SUCCESS)

    handle = _handle(namespace, runtime)
    if namespace.command == "send":
        message = Message(text=namespace.message, delivery=namespace.delivery, timeout=namespace.timeout)
        runtime.send_message(handle, message)
        print(f"Delivered to {handle.session_id}")
        return int(ExitCode.SUCCESS)
    if namespace.command == "ready":
        ready = runtime.is_ready(handle)
        print("ready" if ready else "not ready")
        return int(ExitCode.SUCCESS if ready else ExitCode.NEGATIVE)
    if namespace.command == "running":
        running = runtime.detect_running(handle)
        print("running" if running else "not running")
        return int(ExitCode.SUCCESS if running else ExitCode.NEGATIVE)
    if namespace.command == "resume":
        runtime.resume(handle)
        print(f"Resumed {handle.session_id}")
        return int(ExitCode.SUCCESS)
    if namespace.command == "stop":
        runtime.stop(handle, namespace.reason)
        print(f"Stopped {handle.session_id}")
        return int(ExitCode.SUCCESS)
    raise ConfigurationError(f"Unknown command: {namespace.command}")


def main(
    argv: Sequence[str] | None = None,
    *,
    backend_factory: BackendFactory | None = None,
    registry: RuntimeRegistry | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    try:
        config = load_registry_or_default(namespace.config)
        if registry is None:
            hooks = None
            if namespace.hook_log is not None or namespace.hook_command:
                hooks = build_hook_emitter(namespace)
            registry = build_default_registry(config, hooks=hooks)
        backend = (backend_factory or _default_backend)()
        logger.debug("Running command=%s runtimes=%s", namespace.command, sorted(registry.names()))
        return run_command(namespace, registry=registry, config=config, backend=backend)
    except AgentMuxError as exc:
        logger.error(
            "Handled AgentMuxError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(user_facing_error("Unexpected runtime failure", hint=f"Inspect logs: {log_path}"), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
