"""Canonical session environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

SESSION_ID = "AGENTMUX_SESSION_ID"
ROLE = "AGENTMUX_ROLE"
RIG = "AGENTMUX_RIG"
WORKER = "AGENTMUX_WORKER"
ACTOR = "AGENTMUX_ACTOR"
WORKDIR = "AGENTMUX_WORKDIR"

CANONICAL_VARS = (SESSION_ID, ROLE, RIG, WORKER, ACTOR, WORKDIR)


@dataclass(frozen=True)
class SessionEnv:
    session_id: str = ""
    role: str = ""
    rig: str = ""
    worker: str = ""
    actor: str = ""
    workdir: str = ""


def read_session_env(environ: Mapping[str, str] | None = None) -> SessionEnv:
    source = os.environ if environ is None else environ
    return SessionEnv(
        session_id=source.get(SESSION_ID, "").strip(),
        role=source.get(ROLE, "").strip(),
        rig=source.get(RIG, "").strip(),
        worker=source.get(WORKER, "").strip(),
        actor=source.get(ACTOR, "").strip(),
        workdir=source.get(WORKDIR, "").strip(),
    )


def build_session_env(
    *,
    session_id: str,
    workdir: str,
    overrides: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Canonical variables for a launch, with caller overrides applied last."""
    env: dict[str, str] = {SESSION_ID: session_id}
    if workdir:
        env[WORKDIR] = workdir
    for key, value in (overrides or {}).items():
        env[key] = value
    return env
