from __future__ import annotations

import threading

import pytest

from agentmux.config import RuntimeAdapterConfig, RuntimeRegistryConfig
from agentmux.errors import NotFoundError
from agentmux.runtime import ClaudeRuntime, CodexRuntime, RuntimeRegistry, build_default_registry
from agentmux.runtime.base import AgentRuntime
from agentmux.runtime.backend import TerminalBackend
from fakes import FakeBackend


def _counting_factory(counter: dict[str, int], runtime_cls: type[AgentRuntime] = ClaudeRuntime):
    def factory(backend: TerminalBackend | None) -> AgentRuntime:
        counter["built"] += 1
        return runtime_cls(backend)

    return factory


def test_get_binds_backend_to_new_adapter() -> None:
    registry = RuntimeRegistry()
    registry.register("claude", lambda backend: ClaudeRuntime(backend))
    backend = FakeBackend()

    runtime = registry.get("claude", backend)

    assert isinstance(runtime, ClaudeRuntime)
    assert runtime.backend is backend
    assert registry.get("claude", backend) is not runtime


def test_unregistered_name_raises_not_found_without_constructing() -> None:
    counter = {"built": 0}
    registry = RuntimeRegistry()
    registry.register("claude", _counting_factory(counter))

    with pytest.raises(NotFoundError) as exc_info:
        registry.get("gemini", FakeBackend())

    assert counter["built"] == 0
    assert "gemini" in exc_info.value.message


def test_reregistering_replaces_factory_and_keeps_one_name() -> None:
    registry = RuntimeRegistry()
    registry.register("agent", lambda backend: ClaudeRuntime(backend))
    registry.register("agent", lambda backend: CodexRuntime(backend))

    assert registry.names().count("agent") == 1
    assert isinstance(registry.get("agent", None), CodexRuntime)


def test_contains_reports_registered_names() -> None:
    registry = build_default_registry()

    assert "claude" in registry
    assert "codex" in registry
    assert "gemini" not in registry
    assert sorted(registry.names()) == ["claude", "codex"]


def test_default_registry_binds_configured_settings() -> None:
    config = RuntimeRegistryConfig(runtimes={"codex": RuntimeAdapterConfig(bin="/opt/bin/codex")})

    runtime = build_default_registry(config).get("codex", FakeBackend())

    assert runtime.settings.bin == "/opt/bin/codex"
    assert runtime.settings.ready == "warmup"


def test_adapters_do_not_share_settings_objects() -> None:
    registry = build_default_registry()

    first = registry.get("claude", None)
    second = registry.get("claude", None)
    first.settings.args.append("--verbose")

    assert second.settings.args == ["--dangerously-skip-permissions"]


def test_concurrent_register_and_get_are_safe() -> None:
    registry = build_default_registry()
    errors: list[Exception] = []

    def reader() -> None:
        try:
            for _ in range(200):
                registry.get("claude", None)
        except Exception as exc:
            errors.append(exc)

    def writer(index: int) -> None:
        try:
            for round_index in range(50):
                registry.register(f"extra-{index}-{round_index % 5}", lambda backend: CodexRuntime(backend))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads += [threading.Thread(target=writer, args=(index,)) for index in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert all(not thread.is_alive() for thread in threads)
    assert len(registry.names()) == 2 + 2 * 5
