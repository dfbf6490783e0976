"""LiteLLM gateway integration for outbound generation requests."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import litellm

from fishcap.errors import GatewayError

from .models import CompletionCall

logger = logging.getLogger(__name__)

_SUPPORTED_PROVIDERS = {"gemini", "vertex_ai", "openai", "custom"}
_ROLE_MAP = {"user": "user", "model": "assistant"}


class CompletionGateway(Protocol):
    """Anything that can turn a ``CompletionCall`` into raw response text."""

    async def complete(self, call: CompletionCall) -> str: ...


def _read_mapping_value(obj: object, key: str) -> object:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _extract_content(response: object) -> str:
    choices = _read_mapping_value(response, "choices")
    if not isinstance(choices, list) or not choices:
        return ""

    first_choice = choices[0]
    message = _read_mapping_value(first_choice, "message")
    content = _read_mapping_value(message, "content")
    return content if isinstance(content, str) else ""


def _error_status(err: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(err, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def build_messages(call: CompletionCall) -> list[dict[str, str]]:
    """Translate the system instruction and turns into chat-completion messages."""
    messages: list[dict[str, str]] = []
    if call.system_instruction:
        messages.append({"role": "system", "content": call.system_instruction})
    for turn in call.conversation:
        messages.append({"role": _ROLE_MAP[turn.role], "content": turn.text})
    return messages


def build_response_format(call: CompletionCall) -> dict[str, Any] | None:
    if not call.json_mode:
        return None
    if call.response_schema is None:
        return {"type": "json_object"}
    return {
        "type": "json_schema",
        "json_schema": {"name": "response", "schema": call.response_schema},
    }


class LiteLLMGateway:
    """
    Async wrapper around ``litellm.acompletion``.

    One instance is built by the composition root and shared by concurrent
    callers; it keeps no per-call state.
    """

    def __init__(
        self,
        provider: str = "gemini",
        api_base: str | None = None,
        api_key: str | None = None,
        extra_body: dict[str, object] | None = None,
        **kwargs: Any,
    ) -> None:
        self.provider = provider.strip().lower()
        if self.provider not in _SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported LLM provider '{provider}'. "
                f"Supported providers: {sorted(_SUPPORTED_PROVIDERS)}"
            )
        self.api_base = api_base
        self.api_key = api_key
        self.extra_body = dict(extra_body or {})
        self.kwargs = kwargs

    def qualified_model(self, model: str) -> str:
        """Prefix ``model`` with the LiteLLM provider route unless it already has one."""
        if self.provider == "custom" or "/" in model:
            return model
        return f"{self.provider}/{model}"

    async def complete(self, call: CompletionCall) -> str:
        """Send one completion request and return the raw response text."""
        completion_kwargs: dict[str, Any] = {
            "model": self.qualified_model(call.model),
            "messages": build_messages(call),
            "temperature": call.temperature,
        }
        completion_kwargs.update(self.kwargs)

        if call.max_output_tokens is not None:
            completion_kwargs["max_tokens"] = call.max_output_tokens

        response_format = build_response_format(call)
        if response_format is not None:
            completion_kwargs["response_format"] = response_format

        if self.extra_body:
            completion_kwargs["extra_body"] = self.extra_body
        if self.api_base:
            completion_kwargs["api_base"] = self.api_base
        if self.api_key:
            completion_kwargs["api_key"] = self.api_key

        try:
            response = await litellm.acompletion(**completion_kwargs)
        except Exception as err:
            raise GatewayError(
                f"LLM gateway request failed: {err}",
                status_code=_error_status(err),
            ) from err

        return _extract_content(response)
