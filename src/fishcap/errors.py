"""Exception hierarchy shared by the generation, routing and cache layers."""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for failures raised inside a generation attempt."""


class GatewayError(GenerationError):
    """The underlying completion service rejected or failed the request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AttemptTimeoutError(GenerationError, TimeoutError):
    """A single attempt did not complete before its deadline."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Attempt timeout: no response within {timeout_ms}ms deadline")
        self.timeout_ms = timeout_ms


class ResponseParseError(GenerationError):
    """A JSON-mode response could not be parsed as a JSON document."""


class PolicyConfigurationError(ValueError):
    """The model selection policy table is incomplete or malformed."""


class StoreError(Exception):
    """A key-value store operation failed."""


class StorageQuotaExceededError(StoreError):
    """A write would push the store past its byte budget."""
