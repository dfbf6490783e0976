"""Pydantic models for structured generation requests and results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from fishcap.routing.models import Task

DEFAULT_TEMPERATURE = 0.2
DEFAULT_TIMEOUT_MS = 40_000
DEFAULT_MAX_ATTEMPTS = 8


class ConversationTurn(BaseModel):
    """One turn of the conversation sent to the model."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    text: str


class GenerationRequest(BaseModel):
    """Inbound request for one logical generation call."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    task: Task
    system_instruction: str | None = Field(default=None, alias="systemInstruction")
    conversation: list[ConversationTurn] = Field(min_length=1)
    json_mode: bool = Field(default=False, alias="jsonMode")
    response_schema: dict[str, Any] | None = Field(default=None, alias="schema")
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_output_tokens: int | None = Field(default=None, gt=0, alias="maxOutputTokens")
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, alias="timeoutMs")
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, alias="maxAttempts")
    model_override: str | None = Field(
        default=None,
        alias="modelOverride",
        description="Replaces the routed model identifier on every attempt",
    )


class CompletionCall(BaseModel):
    """A single outbound call handed to the gateway for one attempt."""

    model: str
    system_instruction: str | None = None
    conversation: list[ConversationTurn]
    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int | None = None
    json_mode: bool = False
    response_schema: dict[str, Any] | None = None


class AttemptOutcome(str, Enum):
    """How a single attempt ended."""

    success = "success"
    timeout = "timeout"
    retryable_error = "retryable_error"
    model_unavailable = "model_unavailable"
    parse_error = "parse_error"
    fatal_error = "fatal_error"


class AttemptRecord(BaseModel):
    """An immutable snapshot of a single attempt."""

    model_config = ConfigDict(frozen=True)

    attempt_number: int = Field(ge=1)
    model: str
    is_fallback: bool
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: int = Field(ge=0)
    outcome: AttemptOutcome
    error: str | None = None
    backoff_ms: int = Field(default=0, ge=0, description="Sleep taken after this attempt")


class GenerationMeta(BaseModel):
    """Timing and routing metadata attached to every result."""

    task: Task
    model: str | None = None
    total_ms: int = Field(ge=0)
    attempt_count: int = Field(ge=0)
    per_attempt_ms: dict[str, int] = Field(default_factory=dict)
    attempts: list[AttemptRecord] = Field(default_factory=list)
    cache_hit: bool | None = None
    timeout: bool | None = None


class ErrorCode(str, Enum):
    """Terminal error codes surfaced to callers."""

    timeout = "timeout"
    api_error = "api_error"


class GenerationErrorInfo(BaseModel):
    code: ErrorCode
    message: str


class GenerationSuccess(BaseModel):
    """Structurally successful response. ``value`` is parsed JSON in JSON mode."""

    ok: Literal[True] = True
    value: Any
    meta: GenerationMeta

    def to_wire(self) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "model": self.meta.model,
            "totalMs": self.meta.total_ms,
            "attempts": self.meta.attempt_count,
        }
        if self.meta.cache_hit is not None:
            meta["cacheHit"] = self.meta.cache_hit
        return {"ok": True, "value": self.value, "meta": meta}


class GenerationFailure(BaseModel):
    """All attempts failed or a terminal error halted the loop."""

    ok: Literal[False] = False
    error: GenerationErrorInfo
    meta: GenerationMeta

    @property
    def error_code(self) -> ErrorCode:
        return self.error.code

    def to_wire(self) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "totalMs": self.meta.total_ms,
            "attempts": self.meta.attempt_count,
        }
        if self.meta.timeout is not None:
            meta["timeout"] = self.meta.timeout
        return {
            "ok": False,
            "error": {"code": self.error.code.value, "message": self.error.message},
            "meta": meta,
        }


GenerationResult = Union[GenerationSuccess, GenerationFailure]
