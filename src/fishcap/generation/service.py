"""StructuredGenerationClient - the bounded retry and model fallback loop."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from fishcap.errors import AttemptTimeoutError, ResponseParseError
from fishcap.routing.classifier import RetryAction, classify_error
from fishcap.routing.router import ModelRouter

from .extractor import parse_json_response
from .gateway import CompletionGateway
from .models import (
    AttemptOutcome,
    AttemptRecord,
    CompletionCall,
    ErrorCode,
    GenerationErrorInfo,
    GenerationFailure,
    GenerationMeta,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_BACKOFF_MS = 30_000.0

SleepFn = Callable[[float], Awaitable[Any]]


def _elapsed_ms(start_monotonic: float) -> int:
    return int((time.monotonic() - start_monotonic) * 1000)


def _outcome_for(error: BaseException, router: ModelRouter) -> AttemptOutcome:
    if isinstance(error, AttemptTimeoutError):
        return AttemptOutcome.timeout
    if isinstance(error, ResponseParseError):
        return AttemptOutcome.parse_error
    if router.is_model_unavailable_error(error):
        return AttemptOutcome.model_unavailable
    if router.is_retryable_error(error):
        return AttemptOutcome.retryable_error
    return AttemptOutcome.fatal_error


class StructuredGenerationClient:
    """
    Runs one generation request through the bounded attempt loop.

    Each attempt routes to a model, runs the gateway call under its own
    deadline, and in JSON mode parses the response. The first structurally
    parseable response wins; semantic validation belongs to the caller.

    Failures never raise: they come back as ``GenerationFailure`` with code
    ``timeout`` when the last attempt hit its deadline, ``api_error`` otherwise.
    Cancelling the awaiting task aborts the whole loop.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        router: ModelRouter | None = None,
        *,
        max_backoff_ms: float | None = DEFAULT_MAX_BACKOFF_MS,
        retry_on_parse_error: bool = False,
        lenient_json: bool = True,
        sleep: SleepFn | None = None,
    ) -> None:
        self._gateway = gateway
        self._router = router or ModelRouter()
        self._max_backoff_ms = max_backoff_ms
        self._retry_on_parse_error = retry_on_parse_error
        self._lenient_json = lenient_json
        self._sleep: SleepFn = sleep or asyncio.sleep

    @property
    def router(self) -> ModelRouter:
        return self._router

    async def _run_attempt(self, request: GenerationRequest, model: str) -> Any:
        call = CompletionCall(
            model=model,
            system_instruction=request.system_instruction,
            conversation=list(request.conversation),
            temperature=request.temperature,
            max_output_tokens=request.max_output_tokens,
            json_mode=request.json_mode,
            response_schema=request.response_schema,
        )
        try:
            text = await asyncio.wait_for(
                self._gateway.complete(call),
                timeout=request.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as err:
            raise AttemptTimeoutError(request.timeout_ms) from err

        if request.json_mode:
            return parse_json_response(text, lenient=self._lenient_json)
        return text

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Execute the attempt loop for ``request`` and return a tagged result."""
        start_total = time.monotonic()
        task = request.task
        attempts = 0
        route_index = 0
        last_error: BaseException | None = None
        records: list[AttemptRecord] = []
        per_attempt_ms: dict[str, int] = {}

        while attempts < request.max_attempts:
            route = self._router.select_model(task, route_index)
            model = request.model_override or route.model
            is_fallback = route.is_fallback and request.model_override is None
            attempts += 1
            started_at = datetime.now(timezone.utc)
            attempt_start = time.monotonic()

            logger.info(
                "Generation: task=%s attempt %d/%d model=%s fallback=%s",
                task.value,
                attempts,
                request.max_attempts,
                model,
                is_fallback,
            )

            try:
                value = await self._run_attempt(request, model)
            except Exception as err:
                duration_ms = _elapsed_ms(attempt_start)
                per_attempt_ms[f"attempt_{attempts}"] = duration_ms
                last_error = err

                next_index = self._router.next_model_attempt_index(task, route_index)
                decision = classify_error(
                    err,
                    attempts=attempts,
                    max_attempts=request.max_attempts,
                    has_next_model=next_index is not None and request.model_override is None,
                    retry_on_parse_error=self._retry_on_parse_error,
                )
                logger.warning(
                    "Generation: attempt %d/%d on %s failed: %s (%s)",
                    attempts,
                    request.max_attempts,
                    model,
                    err,
                    decision.reason,
                )

                backoff_ms = 0.0
                if decision.action is RetryAction.retry:
                    backoff_ms = self._router.get_retry_delay(attempts, cap_ms=self._max_backoff_ms)

                records.append(
                    AttemptRecord(
                        attempt_number=attempts,
                        model=model,
                        is_fallback=is_fallback,
                        started_at=started_at,
                        duration_ms=duration_ms,
                        outcome=_outcome_for(err, self._router),
                        error=str(err),
                        backoff_ms=int(backoff_ms),
                    )
                )

                if decision.action is RetryAction.halt:
                    break

                if decision.action is RetryAction.advance and next_index is not None:
                    route_index = next_index
                    continue

                logger.info(
                    "Generation: retrying task=%s in %dms",
                    task.value,
                    int(backoff_ms),
                )
                await self._sleep(backoff_ms / 1000)
                route_index += 1
                continue

            duration_ms = _elapsed_ms(attempt_start)
            per_attempt_ms[f"attempt_{attempts}"] = duration_ms
            records.append(
                AttemptRecord(
                    attempt_number=attempts,
                    model=model,
                    is_fallback=is_fallback,
                    started_at=started_at,
                    duration_ms=duration_ms,
                    outcome=AttemptOutcome.success,
                )
            )
            total_ms = _elapsed_ms(start_total)
            logger.info(
                "Generation: task=%s succeeded on attempt %d with %s in %dms",
                task.value,
                attempts,
                model,
                total_ms,
            )
            return GenerationSuccess(
                value=value,
                meta=GenerationMeta(
                    task=task,
                    model=model,
                    total_ms=total_ms,
                    attempt_count=attempts,
                    per_attempt_ms=per_attempt_ms,
                    attempts=records,
                ),
            )

        timed_out = isinstance(last_error, AttemptTimeoutError)
        message = str(last_error) if last_error is not None else "Unknown generation error"
        total_ms = _elapsed_ms(start_total)
        logger.error(
            "Generation: task=%s failed after %d attempt(s) in %dms: %s",
            task.value,
            attempts,
            total_ms,
            message,
        )
        return GenerationFailure(
            error=GenerationErrorInfo(
                code=ErrorCode.timeout if timed_out else ErrorCode.api_error,
                message=message,
            ),
            meta=GenerationMeta(
                task=task,
                model=records[-1].model if records else None,
                total_ms=total_ms,
                attempt_count=attempts,
                per_attempt_ms=per_attempt_ms,
                attempts=records,
                timeout=timed_out,
            ),
        )
