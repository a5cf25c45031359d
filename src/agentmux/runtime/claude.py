"""Claude Code runtime adapter."""

from __future__ import annotations

from agentmux.runtime.base import AgentRuntime
from agentmux.runtime.types import Delivery, ReadinessMode


class ClaudeRuntime(AgentRuntime):
    """Claude Code in a tmux session.

    Ready when the input prompt (``>`` at the start of a pane line) shows up.
    Pane text is a bootstrap-time heuristic: a prompt-like line printed by the
    program's own output can produce a false positive.
    """

    name = "claude"
    default_readiness = ReadinessMode.PROMPT
    supported_deliveries = frozenset({Delivery.TMUX})
    running_commands = frozenset({"node", "claude"})
    account_env_var = "CLAUDE_CONFIG_DIR"
    # Used only when the registry switches this runtime to warmup readiness.
    default_warmup_seconds = 10.0
