"""Schema validation, lenient normalization and repair prompts."""

from fishcap.validation.models import (
    ValidationInvalid,
    ValidationIssue,
    ValidationOutcome,
    ValidationValid,
)
from fishcap.validation.prompts import build_repair_prompt
from fishcap.validation.validator import ResponseValidator

__all__ = [
    "ResponseValidator",
    "ValidationInvalid",
    "ValidationIssue",
    "ValidationOutcome",
    "ValidationValid",
    "build_repair_prompt",
]
