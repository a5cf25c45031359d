"""Terminal-safe keystroke delivery."""

from __future__ import annotations

import logging as py_logging

from agentmux.cancel import CancelToken, ensure_token
from agentmux.errors import BackendError, OperationCancelled
from agentmux.retry import RetryPolicy, run_with_retry
from agentmux.runtime.backend import TerminalBackend

logger = py_logging.getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 0.5
DEFAULT_DELIVERY_RETRY = RetryPolicy(max_attempts=3, initial_backoff_seconds=0.5, multiplier=2.0)


def deliver_keystrokes(
    backend: TerminalBackend,
    session: str,
    text: str,
    *,
    settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    policy: RetryPolicy = DEFAULT_DELIVERY_RETRY,
    cancel: CancelToken | None = None,
) -> None:
    """Type ``text`` literally, let the paste settle, then press Enter separately.

    Sending Enter in the same call as the text corrupts multi-line payloads in
    interactive programs, so the two steps are always distinct backend calls.
    Each step is retried on its own so a failed Enter never re-types the text.
    """
    token = ensure_token(cancel)
    if token.cancelled:
        raise OperationCancelled(f"Delivery to {session} cancelled before sending.")

    run_with_retry(
        lambda: backend.send_literal(session, text),
        policy=policy,
        sleep=token.sleep,
        retry_on=(BackendError,),
    )
    logger.debug("Delivered literal text session=%s length=%s", session, len(text))

    if settle_seconds > 0 and not token.sleep(settle_seconds):
        raise OperationCancelled(
            f"Delivery to {session} cancelled before Enter.",
            hint="The text was typed but not submitted.",
        )

    run_with_retry(
        lambda: backend.send_enter(session),
        policy=policy,
        sleep=token.sleep,
        retry_on=(BackendError,),
    )
