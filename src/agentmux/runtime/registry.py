"""Runtime adapter registry."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from agentmux.config import RuntimeRegistryConfig, RuntimeTimeouts, adapter_config
from agentmux.errors import NotFoundError
from agentmux.hooks.emitter import HookEmitter
from agentmux.runtime.backend import TerminalBackend
from agentmux.runtime.base import AgentRuntime
from agentmux.runtime.claude import ClaudeRuntime
from agentmux.runtime.codex import CodexRuntime

logger = py_logging.getLogger(__name__)

RuntimeFactory = Callable[[TerminalBackend | None], AgentRuntime]

BUILTIN_RUNTIMES: dict[str, type[AgentRuntime]] = {
    ClaudeRuntime.name: ClaudeRuntime,
    CodexRuntime.name: CodexRuntime,
}


class _ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class RuntimeRegistry:
    """Name to factory map owned by the composition root and passed to callers."""

    def __init__(self) -> None:
        self._lock = _ReadWriteLock()
        self._factories: dict[str, RuntimeFactory] = {}

    def register(self, name: str, factory: RuntimeFactory) -> None:
        """Install ``factory`` under ``name``; an existing entry is replaced."""
        with self._lock.write():
            replaced = name in self._factories
            self._factories[name] = factory
        logger.debug("Registered runtime name=%s replaced=%s", name, replaced)

    def get(self, name: str, backend: TerminalBackend | None) -> AgentRuntime:
        with self._lock.read():
            factory = self._factories.get(name)
        if factory is None:
            raise NotFoundError(
                f"runtime not registered: {name}",
                hint=f"Registered runtimes: {', '.join(sorted(self.names())) or 'none'}.",
            )
        return factory(backend)

    def names(self) -> list[str]:
        with self._lock.read():
            return list(self._factories)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._factories


def build_default_registry(
    config: RuntimeRegistryConfig | None = None,
    *,
    timeouts: RuntimeTimeouts | None = None,
    hooks: HookEmitter | None = None,
) -> RuntimeRegistry:
    """Registry with the built-in adapters bound to ``config`` settings."""
    registry = RuntimeRegistry()
    for name, runtime_cls in BUILTIN_RUNTIMES.items():
        registry.register(name, _bind(runtime_cls, config, timeouts, hooks))
    return registry


def _bind(
    runtime_cls: type[AgentRuntime],
    config: RuntimeRegistryConfig | None,
    timeouts: RuntimeTimeouts | None,
    hooks: HookEmitter | None,
) -> RuntimeFactory:
    settings = adapter_config(runtime_cls.name, config)

    def factory(backend: TerminalBackend | None) -> AgentRuntime:
        return runtime_cls(
            backend,
            settings=settings.model_copy(deep=True),
            registry_config=config,
            timeouts=timeouts,
            hooks=hooks,
        )

    return factory
