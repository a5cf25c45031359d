"""Codex runtime adapter."""

from __future__ import annotations

from agentmux.runtime.base import AgentRuntime
from agentmux.runtime.types import Delivery, ReadinessMode


class CodexRuntime(AgentRuntime):
    """Codex in a tmux session.

    Codex has no stable prompt marker, so start and resume wait a fixed warmup
    and readiness checks look at the pane's foreground command instead.
    """

    name = "codex"
    default_readiness = ReadinessMode.WARMUP
    supported_deliveries = frozenset({Delivery.TMUX, Delivery.STDIN})
    running_commands = frozenset({"codex", "node"})
    account_env_var = "CODEX_HOME"
    default_warmup_seconds = 5.0
