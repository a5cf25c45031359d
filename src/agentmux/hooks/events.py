"""Canonical lifecycle hook events."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing_extensions import TypedDict

from agentmux.env import SessionEnv


class HookEventType(str, Enum):
    SESSION_START = "SessionStart"
    SESSION_STOP = "SessionStop"
    ON_MESSAGE = "OnMessage"
    ON_ERROR = "OnError"


class StartEventData(TypedDict):
    mode: str
    ready: bool


class StopEventData(TypedDict):
    reason: str


class MessageEventData(TypedDict):
    delivery: str
    length: int


class ErrorEventData(TypedDict):
    operation: str
    error: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HookEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: HookEventType
    runtime: str
    session_id: str
    workdir: str = ""
    rig: str = ""
    role: str = ""
    bead: str = ""
    actor: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    data: dict[str, Any] = Field(default_factory=dict)

    @field_serializer("timestamp")
    def _rfc3339(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_json(self) -> str:
        return self.model_dump_json()


def build_event(
    event: HookEventType,
    *,
    runtime: str,
    session_id: str,
    workdir: str = "",
    context: SessionEnv | None = None,
    bead: str = "",
    data: Mapping[str, Any] | None = None,
) -> HookEvent:
    ctx = context or SessionEnv()
    return HookEvent(
        event=event,
        runtime=runtime,
        session_id=session_id,
        workdir=workdir or ctx.workdir,
        rig=ctx.rig,
        role=ctx.role,
        bead=bead,
        actor=ctx.actor,
        data=dict(data or {}),
    )
