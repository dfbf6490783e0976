"""Sequence tests for the structured generation attempt loop."""

from __future__ import annotations

import asyncio
import random
from typing import Any

import pytest

from fishcap.errors import GatewayError
from fishcap.generation.models import (
    AttemptOutcome,
    CompletionCall,
    ConversationTurn,
    ErrorCode,
    GenerationFailure,
    GenerationRequest,
    GenerationSuccess,
)
from fishcap.generation.service import StructuredGenerationClient
from fishcap.routing.models import ModelPolicy, Task
from fishcap.routing.router import ModelRouter

_EXPLAIN_JSON = '{"page":1,"plain":"x","example":"y","takeaway":"z"}'
_HANG = object()


class ScriptedGateway:
    """Plays back responses in order; the last entry repeats forever."""

    def __init__(self, *script: Any) -> None:
        self._script = list(script)
        self.calls: list[CompletionCall] = []

    async def complete(self, call: CompletionCall) -> str:
        self.calls.append(call)
        step = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if step is _HANG:
            await asyncio.sleep(30)
        if isinstance(step, BaseException):
            raise step
        return step


def _router(*models: str) -> ModelRouter:
    policy = ModelPolicy(primary=models[0], fallbacks=tuple(models[1:]))
    return ModelRouter({task: policy for task in Task}, rng=random.Random(3))


def _request(**overrides: Any) -> GenerationRequest:
    values: dict[str, Any] = {
        "task": Task.step1_explain,
        "system_instruction": "Explain slides.",
        "conversation": [ConversationTurn(role="user", text="Page 1: gradients")],
        "json_mode": True,
    }
    values.update(overrides)
    return GenerationRequest(**values)


class TestStructuredGenerationClient:
    def _client(
        self, gateway: ScriptedGateway, *models: str, **kwargs: Any
    ) -> tuple[StructuredGenerationClient, list[float]]:
        sleeps: list[float] = []

        async def record_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        client = StructuredGenerationClient(
            gateway,
            _router(*(models or ("gemini-a", "gemini-b"))),
            sleep=record_sleep,
            **kwargs,
        )
        return client, sleeps

    def test_success_on_first_attempt(self) -> None:
        gateway = ScriptedGateway(_EXPLAIN_JSON)
        client, sleeps = self._client(gateway)

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationSuccess)
        assert result.value == {"page": 1, "plain": "x", "example": "y", "takeaway": "z"}
        assert result.meta.model == "gemini-a"
        assert result.meta.attempt_count == 1
        assert list(result.meta.per_attempt_ms) == ["attempt_1"]
        assert result.meta.attempts[0].outcome is AttemptOutcome.success
        assert sleeps == []
        assert gateway.calls[0].json_mode is True
        assert gateway.calls[0].system_instruction == "Explain slides."

    def test_falls_back_to_second_model_after_three_503s(self) -> None:
        busy = GatewayError("Service Unavailable", status_code=503)
        gateway = ScriptedGateway(busy, busy, busy, _EXPLAIN_JSON)
        client, sleeps = self._client(gateway)

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationSuccess)
        assert result.meta.attempt_count == 4
        assert result.meta.model == "gemini-b"
        assert [call.model for call in gateway.calls] == ["gemini-a"] * 3 + ["gemini-b"]
        assert len(sleeps) == 3
        for attempt, seconds in enumerate(sleeps, start=1):
            assert 2**attempt <= seconds < 2**attempt + 1
        assert result.meta.attempts[-1].is_fallback is True

    def test_fenced_response_parses_identically(self) -> None:
        plain, _ = self._client(ScriptedGateway(_EXPLAIN_JSON))
        fenced, _ = self._client(ScriptedGateway(f"```json\n{_EXPLAIN_JSON}\n```"))

        plain_result = asyncio.run(plain.generate(_request()))
        fenced_result = asyncio.run(fenced.generate(_request()))

        assert isinstance(plain_result, GenerationSuccess)
        assert isinstance(fenced_result, GenerationSuccess)
        assert plain_result.value == fenced_result.value

    def test_identical_inputs_yield_identical_values(self) -> None:
        client, _ = self._client(ScriptedGateway(_EXPLAIN_JSON))
        first = asyncio.run(client.generate(_request()))
        second = asyncio.run(client.generate(_request()))
        assert isinstance(first, GenerationSuccess)
        assert isinstance(second, GenerationSuccess)
        assert first.value == second.value

    def test_text_mode_returns_raw_text(self) -> None:
        client, _ = self._client(ScriptedGateway("Just prose."))
        result = asyncio.run(client.generate(_request(json_mode=False)))
        assert isinstance(result, GenerationSuccess)
        assert result.value == "Just prose."

    def test_unparseable_json_fails_without_retry(self) -> None:
        gateway = ScriptedGateway("Not JSON at all")
        client, sleeps = self._client(gateway)

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationFailure)
        assert result.error_code is ErrorCode.api_error
        assert "JSON parse failure" in result.error.message
        assert result.meta.attempt_count == 1
        assert result.meta.attempts[0].outcome is AttemptOutcome.parse_error
        assert sleeps == []

    def test_parse_error_retried_when_configured(self) -> None:
        gateway = ScriptedGateway("Not JSON at all", _EXPLAIN_JSON)
        client, sleeps = self._client(gateway, retry_on_parse_error=True)

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationSuccess)
        assert result.meta.attempt_count == 2
        assert len(sleeps) == 1

    def test_unavailable_model_advances_immediately(self) -> None:
        gateway = ScriptedGateway(
            GatewayError("models/gemini-x is not found", status_code=404),
            '{"ok": true}',
        )
        client, sleeps = self._client(gateway, "gemini-x", "gemini-y")

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationSuccess)
        assert result.meta.model == "gemini-y"
        assert result.meta.attempt_count == 2
        assert [call.model for call in gateway.calls] == ["gemini-x", "gemini-y"]
        assert sleeps == []
        first = result.meta.attempts[0]
        assert first.outcome is AttemptOutcome.model_unavailable
        assert first.backoff_ms == 0

    def test_unavailable_last_model_fails(self) -> None:
        gateway = ScriptedGateway(GatewayError("not found", status_code=404))
        client, sleeps = self._client(gateway, "gemini-only")

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationFailure)
        assert result.error_code is ErrorCode.api_error
        assert result.meta.attempt_count == 1
        assert sleeps == []

    def test_rate_limits_exhaust_all_attempts(self) -> None:
        gateway = ScriptedGateway(GatewayError("Resource exhausted", status_code=429))
        client, sleeps = self._client(gateway)

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationFailure)
        assert result.error_code is ErrorCode.api_error
        assert result.meta.attempt_count == 8
        assert result.meta.timeout is False
        assert len(sleeps) == 7
        assert all(seconds <= 30 for seconds in sleeps)
        # Attempts past the policy end stay on the last-resort model.
        assert [call.model for call in gateway.calls][-2:] == ["gemini-b", "gemini-b"]

    def test_single_attempt_budget_never_sleeps(self) -> None:
        gateway = ScriptedGateway(GatewayError("Service Unavailable", status_code=503))
        client, sleeps = self._client(gateway)

        result = asyncio.run(client.generate(_request(max_attempts=1)))

        assert isinstance(result, GenerationFailure)
        assert result.meta.attempt_count == 1
        assert len(gateway.calls) == 1
        assert sleeps == []

    def test_non_retryable_error_halts(self) -> None:
        gateway = ScriptedGateway(GatewayError("API key not valid", status_code=400))
        client, _ = self._client(gateway)

        result = asyncio.run(client.generate(_request()))

        assert isinstance(result, GenerationFailure)
        assert result.meta.attempt_count == 1
        assert result.meta.attempts[0].outcome is AttemptOutcome.fatal_error

    def test_deadline_produces_timeout_failure(self) -> None:
        gateway = ScriptedGateway(_HANG)
        client, _ = self._client(gateway)

        result = asyncio.run(client.generate(_request(timeout_ms=20, max_attempts=2)))

        assert isinstance(result, GenerationFailure)
        assert result.error_code is ErrorCode.timeout
        assert result.meta.timeout is True
        assert result.meta.attempt_count == 2
        assert {record.outcome for record in result.meta.attempts} == {AttemptOutcome.timeout}

    def test_timeout_then_success_recovers(self) -> None:
        gateway = ScriptedGateway(_HANG, _EXPLAIN_JSON)
        client, sleeps = self._client(gateway)

        result = asyncio.run(client.generate(_request(timeout_ms=20)))

        assert isinstance(result, GenerationSuccess)
        assert result.meta.attempt_count == 2
        assert len(sleeps) == 1

    def test_cancelling_caller_aborts_the_loop(self) -> None:
        gateway = ScriptedGateway(_HANG)
        client, _ = self._client(gateway)

        async def scenario() -> None:
            task = asyncio.create_task(client.generate(_request(timeout_ms=60_000)))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert len(gateway.calls) == 1

    def test_model_override_replaces_routed_model(self) -> None:
        gateway = ScriptedGateway(_EXPLAIN_JSON)
        client, _ = self._client(gateway)

        result = asyncio.run(client.generate(_request(model_override="gemini-custom")))

        assert isinstance(result, GenerationSuccess)
        assert gateway.calls[0].model == "gemini-custom"
        assert result.meta.model == "gemini-custom"

    def test_wire_shapes(self) -> None:
        ok_client, _ = self._client(ScriptedGateway(_EXPLAIN_JSON))
        bad_client, _ = self._client(ScriptedGateway(GatewayError("bad", status_code=400)))

        ok = asyncio.run(ok_client.generate(_request())).to_wire()
        bad = asyncio.run(bad_client.generate(_request())).to_wire()

        assert ok["ok"] is True
        assert set(ok["meta"]) == {"model", "totalMs", "attempts"}
        assert bad["ok"] is False
        assert bad["error"]["code"] == "api_error"
        assert set(bad["meta"]) == {"totalMs", "attempts", "timeout"}


def test_override_attempts_are_not_marked_fallback() -> None:
    busy = GatewayError("Service Unavailable", status_code=503)
    gateway = ScriptedGateway(busy, busy, busy, _EXPLAIN_JSON)
    sleeps: list[float] = []

    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = StructuredGenerationClient(gateway, _router("gemini-a", "gemini-b"), sleep=record_sleep)
    result = asyncio.run(client.generate(_request(model_override="gemini-custom")))

    assert isinstance(result, GenerationSuccess)
    assert result.meta.attempt_count == 4
    assert {call.model for call in gateway.calls} == {"gemini-custom"}
    assert [record.is_fallback for record in result.meta.attempts] == [False] * 4
