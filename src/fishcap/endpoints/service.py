"""EndpointService - cache, generate, validate, repair, fall back."""

from __future__ import annotations

import hashlib
import json
import logging

from fishcap.cache.layer import DEFAULT_PROMPT_VERSION, CachingLayer, make_cache_key
from fishcap.generation.models import (
    ConversationTurn,
    GenerationFailure,
    GenerationRequest,
    GenerationSuccess,
)
from fishcap.generation.service import StructuredGenerationClient
from fishcap.validation.models import ValidationInvalid, ValidationIssue, ValidationValid
from fishcap.validation.validator import ResponseValidator

from .models import (
    CacheScope,
    EndpointInputs,
    EndpointMeta,
    EndpointResult,
    EndpointSpec,
    InvalidOutputPolicy,
    ResultSource,
)

logger = logging.getLogger(__name__)


def _prompt_snippet(endpoint_name: str, prompt: str) -> str:
    """Digest of the full rendered prompt, so inputs past any prefix still key the cache."""
    digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()
    return f"{endpoint_name}:{digest}"


class EndpointService:
    """
    Runs an ``EndpointSpec`` so the caller always gets a typed value.

    Order of resolution: cache hit, then a generation call whose output is
    normalized and validated, then (policy permitting) one repair re-ask,
    then the endpoint's deterministic fallback. Only validated LLM output is
    cached.
    """

    def __init__(
        self,
        client: StructuredGenerationClient,
        *,
        validator: ResponseValidator | None = None,
        cache: CachingLayer | None = None,
        invalid_output_policy: InvalidOutputPolicy = InvalidOutputPolicy.fallback,
        prompt_version: str = DEFAULT_PROMPT_VERSION,
    ) -> None:
        self._client = client
        self._validator = validator or ResponseValidator()
        self._cache = cache
        self.invalid_output_policy = invalid_output_policy
        self.prompt_version = prompt_version

    def _request(
        self,
        spec: EndpointSpec,
        conversation: list[ConversationTurn],
    ) -> GenerationRequest:
        return GenerationRequest(
            task=spec.task,
            system_instruction=spec.system_prompt,
            conversation=conversation,
            json_mode=True,
            response_schema=spec.output_model.model_json_schema(by_alias=True)
            if spec.send_schema
            else None,
            temperature=spec.temperature,
            timeout_ms=spec.timeout_ms,
            max_attempts=spec.max_attempts,
        )

    def _fallback(
        self,
        spec: EndpointSpec,
        inputs: EndpointInputs,
        *,
        meta: EndpointMeta,
        issues: list[ValidationIssue] | None = None,
    ) -> EndpointResult:
        logger.info("Endpoint %s: serving deterministic fallback", spec.name)
        meta.source = ResultSource.fallback
        return EndpointResult(data=spec.fallback(inputs), meta=meta, issues=issues or [])

    async def run(
        self,
        spec: EndpointSpec,
        inputs: EndpointInputs,
        *,
        scope: CacheScope | None = None,
    ) -> EndpointResult:
        prompt = spec.render_prompt(inputs)

        cache_key: str | None = None
        if self._cache is not None and scope is not None:
            cache_key = make_cache_key(
                scope.session_id,
                scope.concept_id,
                _prompt_snippet(spec.name, prompt),
                self.prompt_version,
            )
            hit = self._cache.get(cache_key)
            if hit is not None:
                outcome = self._validator.validate(hit.value, spec.output_model)
                if isinstance(outcome, ValidationValid):
                    logger.info("Endpoint %s: cache hit", spec.name)
                    return EndpointResult(
                        data=outcome.data,
                        meta=EndpointMeta(
                            source=ResultSource.cache,
                            model=hit.meta.get("model"),
                            cache_hit=True,
                        ),
                    )
                logger.warning("Endpoint %s: cached value no longer validates", spec.name)
                self._cache.invalidate(cache_key)

        conversation = [ConversationTurn(role="user", text=prompt)]
        result = await self._client.generate(self._request(spec, conversation))
        meta = EndpointMeta(
            source=ResultSource.llm,
            model=result.meta.model,
            total_ms=result.meta.total_ms,
            attempts=result.meta.attempt_count,
        )

        if isinstance(result, GenerationFailure):
            meta.error_code = result.error_code
            logger.warning(
                "Endpoint %s: generation failed (%s): %s",
                spec.name,
                result.error_code.value,
                result.error.message,
            )
            return self._fallback(spec, inputs, meta=meta)

        outcome = self._validator.normalize_and_validate(
            result.value, spec.output_model, spec.normalizer
        )

        if isinstance(outcome, ValidationInvalid) and (
            self.invalid_output_policy is InvalidOutputPolicy.repair
        ):
            outcome, repaired = await self._repair(spec, prompt, conversation, result, outcome, meta)
            meta.repaired = repaired

        if isinstance(outcome, ValidationInvalid):
            logger.warning(
                "Endpoint %s: output failed validation with %d issue(s)",
                spec.name,
                len(outcome.issues),
            )
            return self._fallback(spec, inputs, meta=meta, issues=outcome.issues)

        if cache_key is not None and self._cache is not None:
            self._cache.put(
                cache_key,
                outcome.data.model_dump(by_alias=True, mode="json"),
                {"model": meta.model},
            )
        return EndpointResult(data=outcome.data, meta=meta)

    async def _repair(
        self,
        spec: EndpointSpec,
        prompt: str,
        conversation: list[ConversationTurn],
        previous: GenerationSuccess,
        outcome: ValidationInvalid,
        meta: EndpointMeta,
    ) -> tuple[ValidationInvalid | ValidationValid, bool]:
        logger.info(
            "Endpoint %s: requesting one repair for %d issue(s)",
            spec.name,
            len(outcome.issues),
        )
        repair_prompt = self._validator.build_repair_prompt(prompt, previous.value, outcome.issues)
        repair_conversation = [
            *conversation,
            ConversationTurn(role="model", text=json.dumps(previous.value, default=str)),
            ConversationTurn(role="user", text=repair_prompt),
        ]
        repaired = await self._client.generate(self._request(spec, repair_conversation))
        meta.total_ms += repaired.meta.total_ms
        meta.attempts += repaired.meta.attempt_count

        if isinstance(repaired, GenerationFailure):
            meta.error_code = repaired.error_code
            return outcome, False

        meta.model = repaired.meta.model
        second = self._validator.normalize_and_validate(
            repaired.value, spec.output_model, spec.normalizer
        )
        return second, isinstance(second, ValidationValid)
