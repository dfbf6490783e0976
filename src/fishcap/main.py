"""FastAPI surface over the generation client and the built-in endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI
from pydantic import BaseModel, Field

from fishcap.cache.layer import CachingLayer
from fishcap.config import ClientConfig
from fishcap.endpoints.catalog import DIAGNOSE_ENDPOINT, GRADE_ENDPOINT
from fishcap.endpoints.models import CacheScope
from fishcap.endpoints.service import EndpointService
from fishcap.generation.gateway import LiteLLMGateway
from fishcap.generation.models import GenerationRequest
from fishcap.generation.service import StructuredGenerationClient

logger = logging.getLogger(__name__)

app = FastAPI(title="FishCap Generation Service", version="0.1.0")


@lru_cache(maxsize=1)
def get_config() -> ClientConfig:
    return ClientConfig.from_env()


@lru_cache(maxsize=1)
def get_generation_client() -> StructuredGenerationClient:
    """Composition root: one shared gateway and client per process."""
    config = get_config()
    gateway = LiteLLMGateway(
        provider=config.provider,
        api_base=config.api_base,
        api_key=config.api_key,
    )
    logger.info("Generation client ready (provider=%s)", config.provider)
    return StructuredGenerationClient(
        gateway,
        max_backoff_ms=config.max_backoff_ms,
        retry_on_parse_error=config.retry_on_parse_error,
    )


@lru_cache(maxsize=1)
def get_endpoint_service() -> EndpointService:
    config = get_config()
    return EndpointService(
        get_generation_client(),
        cache=CachingLayer(ttl_s=config.cache_ttl_s),
        prompt_version=config.prompt_version,
    )


class GradeRequest(BaseModel):
    """Request body for the /grade endpoint."""

    question: str = Field(min_length=5)
    userAnswer: str = Field(min_length=1)
    expectedAnswer: str = Field(min_length=1)
    rubric: list[str] | None = Field(default=None, min_length=1, max_length=5)
    context: str | None = Field(default=None, max_length=2000)
    sessionId: str | None = None
    conceptId: str | None = None


class QuizResultItem(BaseModel):
    question: str
    isCorrect: bool
    barrierTag: str | None = None


class DiagnoseRequest(BaseModel):
    """Request body for the /study/diagnose endpoint."""

    results: list[QuizResultItem] = Field(min_length=1)
    sessionId: str | None = None
    conceptId: str | None = None


def _scope(session_id: str | None, concept_id: str | None) -> CacheScope | None:
    if session_id and concept_id:
        return CacheScope(session_id=session_id, concept_id=concept_id)
    return None


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "service": "fishcap",
        "version": "0.1.0",
    }


@app.post("/generate")
async def generate(
    req: GenerationRequest,
    client: StructuredGenerationClient = Depends(get_generation_client),
    config: ClientConfig = Depends(get_config),
) -> dict[str, Any]:
    """Run the raw attempt loop and return the ok/value or ok/error envelope."""
    defaults: dict[str, Any] = {}
    if "timeout_ms" not in req.model_fields_set:
        defaults["timeout_ms"] = config.default_timeout_ms
    if "max_attempts" not in req.model_fields_set:
        defaults["max_attempts"] = config.default_max_attempts
    if defaults:
        req = req.model_copy(update=defaults)
    result = await client.generate(req)
    return result.to_wire()


@app.post("/grade")
async def grade(
    req: GradeRequest,
    service: EndpointService = Depends(get_endpoint_service),
) -> dict[str, Any]:
    """Grade a short answer. Falls back to an offline heuristic on any failure."""
    result = await service.run(
        GRADE_ENDPOINT,
        req.model_dump(exclude_none=True),
        scope=_scope(req.sessionId, req.conceptId),
    )
    return result.to_wire()


@app.post("/study/diagnose")
async def diagnose(
    req: DiagnoseRequest,
    service: EndpointService = Depends(get_endpoint_service),
) -> dict[str, Any]:
    """Diagnose learning barriers from quiz results."""
    result = await service.run(
        DIAGNOSE_ENDPOINT,
        req.model_dump(),
        scope=_scope(req.sessionId, req.conceptId),
    )
    return result.to_wire()
