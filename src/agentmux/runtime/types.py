"""Session identity models shared by every runtime adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Delivery(str, Enum):
    STDIN = "stdin"
    TMUX = "tmux"
    RPC = "rpc"


class ReadinessMode(str, Enum):
    PROMPT = "prompt"
    WARMUP = "warmup"


class StartMode(str, Enum):
    MINIMAL = "minimal"
    TMUX = "tmux"


class SessionState(str, Enum):
    NOT_STARTED = "not-started"
    STARTING = "starting"
    WARMING = "warming"
    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed-out"
    STOPPED = "stopped"


@dataclass(frozen=True)
class StartOptions:
    session_id: str = ""
    command: str = ""
    workdir: str = ""
    runtime_name: str = ""
    account_dir: str = ""
    env: dict[str, str] = field(default_factory=dict)
    initial_prompt: str = ""
    mode: StartMode = StartMode.TMUX


@dataclass(frozen=True)
class SessionHandle:
    """Snapshot of a session; re-query the adapter for current state.

    Handles from ``list_sessions`` only carry ``runtime`` and ``session_id``.
    """

    runtime: str
    session_id: str
    workdir: str = ""
    pid: int | None = None
    started_at: datetime | None = None
    ready_at: datetime | None = None


@dataclass(frozen=True)
class Message:
    text: str
    delivery: Delivery | None = None
    timeout: float | None = None


@dataclass(frozen=True)
class SessionFilter:
    runtime: str = ""
    workdir: str = ""


def parse_delivery(value: Delivery | str | None) -> Delivery | None:
    if value is None or isinstance(value, Delivery):
        return value
    normalized = value.strip().lower()
    if not normalized:
        return None
    return Delivery(normalized)
