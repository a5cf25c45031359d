"""Runtime abstraction for agent programs hosted in tmux sessions."""

from .backend import SUPPORTED_SHELLS, TerminalBackend
from .base import AgentRuntime
from .claude import ClaudeRuntime
from .codex import CodexRuntime
from .registry import BUILTIN_RUNTIMES, RuntimeRegistry, build_default_registry
from .types import (
    Delivery,
    Message,
    ReadinessMode,
    SessionFilter,
    SessionHandle,
    SessionState,
    StartMode,
    StartOptions,
)

__all__ = [
    "AgentRuntime",
    "BUILTIN_RUNTIMES",
    "build_default_registry",
    "ClaudeRuntime",
    "CodexRuntime",
    "Delivery",
    "Message",
    "ReadinessMode",
    "RuntimeRegistry",
    "SessionFilter",
    "SessionHandle",
    "SessionState",
    "StartMode",
    "StartOptions",
    "SUPPORTED_SHELLS",
    "TerminalBackend",
]
