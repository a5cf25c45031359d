"""Retry/backoff helpers for recoverable operations."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.5
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"Invalid max attempts: {self.max_attempts}")
        if self.initial_backoff_seconds < 0:
            raise ValueError(f"Invalid backoff: {self.initial_backoff_seconds}")


def run_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    sleep: Callable[[float], object] = time.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Only ``retry_on`` errors are retried; anything else propagates at once.

    ``sleep`` may return ``False`` to abort the remaining attempts (a cancelled
    wait); the last retryable error is raised in that case.
    """
    attempt = 0
    backoff = policy.initial_backoff_seconds
    last_error: BaseException | None = None

    while attempt < policy.max_attempts:
        attempt += 1
        try:
            return operation()
        except retry_on as exc:
            last_error = exc
            if attempt >= policy.max_attempts:
                break
            if sleep(backoff) is False:
                break
            backoff *= policy.multiplier

    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry policy exhausted without executing operation.")
