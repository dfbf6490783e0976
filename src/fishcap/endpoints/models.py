"""Models for caller-side endpoint composition."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fishcap.generation.models import DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT_MS, ErrorCode
from fishcap.routing.models import Task
from fishcap.validation.models import ValidationIssue

EndpointInputs = Mapping[str, Any]


class InvalidOutputPolicy(str, Enum):
    """What to do when a parsed response fails semantic validation."""

    fallback = "fallback"  # use the deterministic fallback immediately
    repair = "repair"  # one repair re-ask, then fall back


class ResultSource(str, Enum):
    llm = "llm"
    cache = "cache"
    fallback = "fallback"


class EndpointSpec(BaseModel):
    """Everything needed to run one structured endpoint end to end."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    task: Task
    system_prompt: str
    output_model: type[BaseModel]
    render_prompt: Callable[[EndpointInputs], str]
    fallback: Callable[[EndpointInputs], BaseModel]
    normalizer: Callable[[Any], Any] | None = None
    send_schema: bool = False
    temperature: float = 0.2
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)


class CacheScope(BaseModel):
    """Identifies whose result this is, for cache key derivation."""

    session_id: str
    concept_id: str


class EndpointMeta(BaseModel):
    source: ResultSource
    model: str | None = None
    total_ms: int = 0
    attempts: int = 0
    cache_hit: bool = False
    repaired: bool = False
    error_code: ErrorCode | None = None


class EndpointResult(BaseModel):
    """A fully typed endpoint value and where it came from."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: BaseModel
    meta: EndpointMeta
    issues: list[ValidationIssue] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            **self.data.model_dump(by_alias=True, mode="json"),
            "meta": self.meta.model_dump(mode="json", exclude_none=True),
        }
