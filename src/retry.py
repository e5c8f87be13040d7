"""Bounded retry for calls to external providers (OpenAI, Anthropic, Qdrant)."""

from __future__ import annotations

import logging

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)


def provider_retry(
    transient: tuple[type[BaseException], ...],
    max_attempts: int,
    operation: str,
    initial_wait: float = 1.0,
) -> Retrying:
    """Build a ``Retrying`` controller for one provider call.

    Only *transient* exception types are retried; anything else (bad API key,
    invalid request) propagates on the first attempt.  The last error is
    re-raised unchanged once *max_attempts* is reached.
    """

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s - retry %d/%d after %s: %s",
            operation,
            retry_state.attempt_number,
            max_attempts,
            type(error).__name__,
            error,
        )

    return Retrying(
        retry=retry_if_exception_type(transient),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential_jitter(initial=initial_wait, max=30, jitter=initial_wait),
        before_sleep=_log_retry,
        reraise=True,
    )
