"""Retry eligibility classifier for the generation attempt loop."""

from __future__ import annotations

from enum import Enum

from fishcap.errors import ResponseParseError

from .router import ModelRouter


class RetryAction(str, Enum):
    """What the attempt loop does after a failed attempt."""

    retry = "retry"  # back off, then try again
    advance = "advance"  # skip to the next model immediately
    halt = "halt"  # stop and report failure


class RetryDecision:
    """Encapsulates a retry eligibility decision with its reason."""

    def __init__(self, *, action: RetryAction, reason: str) -> None:
        self.action = action
        self.reason = reason

    @property
    def should_retry(self) -> bool:
        return self.action is not RetryAction.halt

    def __bool__(self) -> bool:
        return self.should_retry

    def __repr__(self) -> str:
        return f"RetryDecision(action={self.action.value!r}, reason={self.reason!r})"


def classify_error(
    error: BaseException,
    *,
    attempts: int,
    max_attempts: int,
    has_next_model: bool,
    retry_on_parse_error: bool = False,
) -> RetryDecision:
    """
    Decide how the loop proceeds after ``error`` on attempt number ``attempts``.

    Rules (evaluated in priority order):
    1. Attempt budget spent: halt.
    2. Unavailable model: advance to the next model without delay, or halt
       when the policy has no further model.
    3. Parse failure: halt unless parse retries are enabled.
    4. Retryable (429, 5xx, overload, timeout): retry after backoff.
    5. Anything else: halt (fail-closed).
    """
    if attempts >= max_attempts:
        return RetryDecision(
            action=RetryAction.halt,
            reason=f"Max attempts reached ({max_attempts}).",
        )

    if ModelRouter.is_model_unavailable_error(error):
        if has_next_model:
            return RetryDecision(
                action=RetryAction.advance,
                reason="Model unavailable. Advancing to the next model without backoff.",
            )
        return RetryDecision(
            action=RetryAction.halt,
            reason="Model unavailable and no further model is configured.",
        )

    if isinstance(error, ResponseParseError):
        if retry_on_parse_error:
            return RetryDecision(
                action=RetryAction.retry,
                reason="JSON parse failure. Parse retries are enabled.",
            )
        return RetryDecision(
            action=RetryAction.halt,
            reason="JSON parse failure is non-retryable.",
        )

    if ModelRouter.is_retryable_error(error):
        return RetryDecision(
            action=RetryAction.retry,
            reason=f"Transient error is retryable. Scheduling attempt {attempts + 1}.",
        )

    return RetryDecision(
        action=RetryAction.halt,
        reason="Error is non-retryable. Halting.",
    )
