"""
Generic retry-with-backoff combinator.

Wraps any fallible callable in a tenacity retry loop driven by an explicit
RetryPolicy, so the embedding driver (and its tests) can swap delays and sleep
functions without touching the provider code.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from .logging import log

T = TypeVar("T")


class RetryCancelled(Exception):
    """Raised when the caller's cancellation event ends the retry loop."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 10
    initial_delay: float = 10.0  # seconds before the second attempt
    backoff_multiplier: float = 2.0
    max_delay: Optional[float] = None

    @classmethod
    def from_settings(cls, settings=None) -> "RetryPolicy":
        if settings is None:
            from .config import SETTINGS as settings

        return cls(
            max_attempts=settings.EMBED_RETRY_ATTEMPTS,
            initial_delay=settings.EMBED_RETRY_INITIAL_DELAY,
            backoff_multiplier=settings.EMBED_RETRY_MULTIPLIER,
            max_delay=settings.EMBED_RETRY_MAX_DELAY,
        )

    def delay_before(self, attempt: int) -> float:
        """Delay slept after the given (1-based) failed attempt."""
        delay = self.initial_delay * self.backoff_multiplier ** (attempt - 1)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "retry.scheduled",
            label=label,
            attempt=retry_state.attempt_number,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
        )

    return before_sleep


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    cancel: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], object]] = None,
    label: str = "call",
) -> T:
    """
    Call ``fn`` until it succeeds or the policy gives up.

    Every exception is retried uniformly. After the last attempt the final
    exception is re-raised unchanged. When ``cancel`` is set, waiting stops
    early, no further attempt is made and RetryCancelled is raised, chained
    to the last attempt's exception if there was one.

    Args:
        fn: zero-argument callable to invoke
        policy: attempt cap and backoff shape
        cancel: optional event that aborts further attempts
        sleep: sleep function (defaults to ``cancel.wait`` or ``time.sleep``)
        label: name used in retry log events
    """
    stop = stop_after_attempt(policy.max_attempts)
    if cancel is not None:
        stop = stop | stop_when_event_set(cancel)

    wait_kwargs: dict[str, float] = {
        "multiplier": policy.initial_delay,
        "exp_base": policy.backoff_multiplier,
    }
    if policy.max_delay is not None:
        wait_kwargs["max"] = policy.max_delay

    if sleep is None:
        sleep = cancel.wait if cancel is not None else time.sleep

    def attempt() -> T:
        if cancel is not None and cancel.is_set():
            raise RetryCancelled(f"{label} cancelled")
        return fn()

    retrying = Retrying(
        stop=stop,
        wait=wait_exponential(**wait_kwargs),
        retry=retry_if_not_exception_type(RetryCancelled),
        sleep=sleep,
        before_sleep=_log_retry(label),
        reraise=True,
    )
    try:
        return retrying(attempt)
    except RetryCancelled:
        raise
    except Exception as e:
        if cancel is not None and cancel.is_set():
            raise RetryCancelled(f"{label} cancelled") from e
        raise
