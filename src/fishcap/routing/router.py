"""Deterministic model selection, backoff and error classification."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Mapping

from .models import ModelPolicy, RouteResult, Task
from .policy import DEFAULT_POLICY, validate_policy_table

# Each model is tried this many consecutive times before moving to the next one.
ATTEMPTS_PER_MODEL = 3

_BASE_DELAY_MS = 1000.0
_JITTER_MS = 1000.0

_RETRYABLE_MESSAGE_MARKERS = ("overloaded", "timeout", "deadline exceeded")
_UNAVAILABLE_MESSAGE_MARKERS = (
    "not found",
    "not supported",
    "unsupported model",
    "invalid model",
)


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _message(error: BaseException) -> str:
    return str(error).lower()


class ModelRouter:
    """
    Maps ``(task, attempt_index)`` to a model identifier and classifies errors.

    Selection is a pure function of its inputs: model ``attempt_index // 3`` of the
    task's policy, clamped to the last model once the list is exhausted.
    """

    def __init__(
        self,
        table: Mapping[Task, ModelPolicy] | None = None,
        *,
        attempts_per_model: int = ATTEMPTS_PER_MODEL,
        rng: random.Random | None = None,
    ) -> None:
        self._table = dict(table if table is not None else DEFAULT_POLICY)
        validate_policy_table(self._table)
        if attempts_per_model < 1:
            raise ValueError("attempts_per_model must be >= 1")
        self.attempts_per_model = attempts_per_model
        self._rng = rng or random.Random()

    def models_for(self, task: Task) -> tuple[str, ...]:
        return self._table[task].models

    def select_model(self, task: Task, attempt_index: int = 0) -> RouteResult:
        """Return the model for ``attempt_index`` (0-based) of ``task``."""
        models = self.models_for(task)
        model_index = max(attempt_index, 0) // self.attempts_per_model

        if model_index >= len(models):
            return RouteResult(
                model=models[-1],
                is_fallback=True,
                model_index=len(models) - 1,
                exhausted=True,
            )

        return RouteResult(
            model=models[model_index],
            is_fallback=model_index > 0,
            model_index=model_index,
        )

    def next_model_attempt_index(self, task: Task, attempt_index: int) -> int | None:
        """
        Return the first attempt index that routes to the model after the one
        used at ``attempt_index``, or ``None`` when no further model exists.
        """
        current = self.select_model(task, attempt_index)
        if current.exhausted or current.model_index + 1 >= len(self.models_for(task)):
            return None
        return (current.model_index + 1) * self.attempts_per_model

    def get_retry_delay(self, attempt_index: int, *, cap_ms: float | None = None) -> float:
        """Exponential backoff ``2**attempt_index * 1000ms`` plus jitter in ``[0, 1000ms)``."""
        delay = (2 ** max(attempt_index, 0)) * _BASE_DELAY_MS + self._rng.random() * _JITTER_MS
        if cap_ms is not None:
            delay = min(delay, cap_ms)
        return delay

    @staticmethod
    def is_retryable_error(error: BaseException | None) -> bool:
        """True for rate limits, 5xx, overload/timeout messages and attempt timeouts."""
        if error is None:
            return False

        if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
            return True

        status = _status_code(error)
        if status is not None and (status == 429 or status >= 500):
            return True

        message = _message(error)
        return any(marker in message for marker in _RETRYABLE_MESSAGE_MARKERS)

    @staticmethod
    def is_model_unavailable_error(error: BaseException | None) -> bool:
        """True when the targeted model identifier is unknown or unsupported."""
        if error is None:
            return False

        if _status_code(error) == 404:
            return True

        message = _message(error)
        return "model" in message and any(
            marker in message for marker in _UNAVAILABLE_MESSAGE_MARKERS
        )
