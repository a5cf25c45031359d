from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from agentmux.config import (
    RuntimeAdapterConfig,
    RuntimeRegistryConfig,
    RuntimeTimeouts,
    adapter_config,
    build_resume_command,
    load_registry_or_default,
    load_runtime_registry_config,
    resolve_runtime_name,
    runtime_registry_path,
    save_runtime_registry_config,
    scope_override_path,
)
from agentmux.errors import ConfigurationError, NotFoundError


def test_registry_path_lives_under_home(tmp_path: Path) -> None:
    assert runtime_registry_path(tmp_path) == tmp_path / ".agentmux" / "runtimes.json"


def test_registry_config_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "runtimes.json"
    config = RuntimeRegistryConfig(
        default="codex",
        runtimes={"codex": RuntimeAdapterConfig(bin="/opt/codex", args=["--full-auto"])},
    )

    save_runtime_registry_config(config, path)
    loaded = load_runtime_registry_config(path)

    assert loaded == config
    assert "ready" not in json.loads(path.read_text(encoding="utf-8"))["runtimes"]["codex"]


def test_missing_registry_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        load_runtime_registry_config(tmp_path / "missing.json")


def test_missing_registry_falls_back_to_defaults(tmp_path: Path) -> None:
    assert load_registry_or_default(tmp_path / "missing.json") == RuntimeRegistryConfig()


def test_malformed_registry_raises_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "runtimes.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_runtime_registry_config(path)


def test_invalid_delivery_in_registry_raises_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "runtimes.json"
    path.write_text(json.dumps({"runtimes": {"claude": {"delivery": "carrier-pigeon"}}}), encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_runtime_registry_config(path)


def test_null_runtimes_is_treated_as_empty() -> None:
    assert RuntimeRegistryConfig.model_validate({"runtimes": None}).runtimes == {}


def test_timeouts_reject_non_positive_bounds() -> None:
    with pytest.raises(ValidationError):
        RuntimeTimeouts(ready_check=0)
    with pytest.raises(ValidationError):
        RuntimeTimeouts(poll_interval=-1)


def test_adapter_config_merges_entry_over_preset() -> None:
    config = RuntimeRegistryConfig(runtimes={"claude": RuntimeAdapterConfig(bin="/usr/local/bin/claude")})

    merged = adapter_config("claude", config)

    assert merged.bin == "/usr/local/bin/claude"
    assert merged.args == ["--dangerously-skip-permissions"]
    assert merged.ready == "prompt"


def test_launch_command_joins_bin_and_args() -> None:
    assert adapter_config("claude").launch_command("claude") == "claude --dangerously-skip-permissions"
    assert RuntimeAdapterConfig().launch_command("codex") == "codex"


def test_resolve_runtime_name_prefers_scope_override(tmp_path: Path) -> None:
    override = scope_override_path(tmp_path)
    override.parent.mkdir(parents=True)
    override.write_text(json.dumps({"runtime": "codex"}), encoding="utf-8")

    assert resolve_runtime_name(tmp_path, RuntimeRegistryConfig(default="claude")) == "codex"


def test_resolve_runtime_name_uses_default_then_fallback(tmp_path: Path) -> None:
    assert resolve_runtime_name(tmp_path, RuntimeRegistryConfig(default="codex")) == "codex"
    assert resolve_runtime_name(None, RuntimeRegistryConfig()) == "claude"


def test_build_resume_command_renders_template() -> None:
    assert build_resume_command("codex", "abc123") == "codex resume abc123"
    assert build_resume_command("claude", " abc123 ") == "claude --resume abc123"


def test_build_resume_command_empty_without_template_or_id() -> None:
    config = RuntimeRegistryConfig(runtimes={"codex": RuntimeAdapterConfig(resume="")})

    assert build_resume_command("codex", "abc123", config) == ""
    assert build_resume_command("codex", "") == ""
    assert build_resume_command("unknown", "abc123") == ""


def test_build_resume_command_rejects_unknown_placeholders() -> None:
    config = RuntimeRegistryConfig(runtimes={"codex": RuntimeAdapterConfig(resume="{bin} --thread {thread}")})

    with pytest.raises(ConfigurationError):
        build_resume_command("codex", "abc123", config)
