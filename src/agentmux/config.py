"""Runtime registry configuration loading/saving."""

from __future__ import annotations

import json
from contextlib import suppress
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agentmux.errors import ConfigurationError, NotFoundError

REGISTRY_DIRNAME = ".agentmux"
REGISTRY_FILENAME = "runtimes.json"
SCOPE_OVERRIDE_FILENAME = "runtime.json"
FALLBACK_RUNTIME = "claude"

_VALID_READY = {"prompt", "warmup"}
_VALID_DELIVERY = {"tmux", "stdin", "rpc"}


class RuntimeAdapterConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    bin: str = ""
    args: list[str] = Field(default_factory=list)
    ready: Literal["prompt", "warmup"] | None = None
    delivery: Literal["tmux", "stdin", "rpc"] | None = None
    resume: str = ""
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("ready")
    @classmethod
    def _validate_ready(cls, value: str | None) -> str | None:
        if value is not None and value not in _VALID_READY:
            raise ValueError(f"Invalid readiness mode: {value}")
        return value

    @field_validator("delivery")
    @classmethod
    def _validate_delivery(cls, value: str | None) -> str | None:
        if value is not None and value not in _VALID_DELIVERY:
            raise ValueError(f"Invalid delivery channel: {value}")
        return value

    def launch_command(self, default_bin: str) -> str:
        parts = [self.bin or default_bin, *self.args]
        return " ".join(part for part in parts if part)


class RuntimeRegistryConfig(BaseModel):
    default: str = ""
    runtimes: dict[str, RuntimeAdapterConfig] = Field(default_factory=dict)

    @field_validator("runtimes", mode="before")
    @classmethod
    def _default_runtimes(cls, value: object) -> object:
        return {} if value is None else value

    def adapter(self, name: str) -> RuntimeAdapterConfig | None:
        return self.runtimes.get(name)


class ScopeRuntimeOverride(BaseModel):
    runtime: str = ""


class RuntimeTimeouts(BaseModel):
    """Wait bounds in seconds; every one is enforced as given."""

    start: float = Field(default=60.0, gt=0)
    start_ready: float = Field(default=60.0, gt=0)
    ready_check: float = Field(default=2.0, gt=0)
    poll_interval: float = Field(default=0.2, gt=0)
    warmup: float | None = Field(default=None, ge=0)
    settle: float = Field(default=0.5, ge=0)
    shell_ready: float = Field(default=5.0, gt=0)


# Built-in adapter presets used when the registry file has no entry.
PRESETS: dict[str, RuntimeAdapterConfig] = {
    "claude": RuntimeAdapterConfig(
        bin="claude",
        args=["--dangerously-skip-permissions"],
        ready="prompt",
        delivery="tmux",
        resume="{bin} --resume {session_id}",
    ),
    "codex": RuntimeAdapterConfig(
        bin="codex",
        ready="warmup",
        delivery="tmux",
        resume="{bin} resume {session_id}",
    ),
}


def runtime_registry_path(home_dir: str | Path | None = None) -> Path:
    home = Path(home_dir).expanduser() if home_dir is not None else Path.home()
    return home / REGISTRY_DIRNAME / REGISTRY_FILENAME


def scope_override_path(scope_dir: str | Path) -> Path:
    return Path(scope_dir).expanduser() / REGISTRY_DIRNAME / SCOPE_OVERRIDE_FILENAME


def _read_json(path: Path, what: str) -> object:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFoundError(f"{what} not found: {path}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Reading {what} failed: {path}", hint=str(exc)) from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Parsing {what} failed: {path}", hint=str(exc)) from exc


def load_runtime_registry_config(path: str | Path) -> RuntimeRegistryConfig:
    resolved = Path(path).expanduser()
    data = _read_json(resolved, "runtime registry")
    try:
        return RuntimeRegistryConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid runtime registry: {resolved}",
            hint=exc.errors()[0].get("msg", "") if exc.errors() else "",
        ) from exc


def load_registry_or_default(path: str | Path | None = None) -> RuntimeRegistryConfig:
    try:
        return load_runtime_registry_config(path or runtime_registry_path())
    except NotFoundError:
        return RuntimeRegistryConfig()


def save_runtime_registry_config(config: RuntimeRegistryConfig, path: str | Path) -> Path:
    resolved = Path(path).expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(mode="json", exclude_none=True)
    resolved.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o644)
    return resolved


def load_scope_override(scope_dir: str | Path) -> ScopeRuntimeOverride | None:
    path = scope_override_path(scope_dir)
    try:
        data = _read_json(path, "runtime override")
    except NotFoundError:
        return None
    try:
        return ScopeRuntimeOverride.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid runtime override: {path}") from exc


def resolve_runtime_name(scope_dir: str | Path | None, config: RuntimeRegistryConfig) -> str:
    if scope_dir is not None:
        override = load_scope_override(scope_dir)
        if override is not None and override.runtime.strip():
            return override.runtime.strip()
    return config.default.strip() or FALLBACK_RUNTIME


def adapter_config(name: str, config: RuntimeRegistryConfig | None = None) -> RuntimeAdapterConfig:
    """Merge a registry entry over the built-in preset for ``name``."""
    preset = PRESETS.get(name, RuntimeAdapterConfig())
    entry = config.adapter(name) if config is not None else None
    if entry is None:
        return preset.model_copy(deep=True)
    merged = preset.model_dump()
    merged.update(entry.model_dump(exclude_unset=True))
    return RuntimeAdapterConfig.model_validate(merged)


def build_resume_command(name: str, session_id: str, config: RuntimeRegistryConfig | None = None) -> str:
    """Render the resume line for ``name``; empty when no template is available."""
    return render_resume_command(adapter_config(name, config), name, session_id)


def render_resume_command(settings: RuntimeAdapterConfig, name: str, session_id: str) -> str:
    template = settings.resume.strip()
    if not template or not session_id.strip():
        return ""
    try:
        return template.format(bin=settings.bin or name, session_id=session_id.strip())
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigurationError(
            f"Invalid resume template for runtime {name}: {template}",
            hint="Use only {bin} and {session_id} placeholders.",
        ) from exc
