"""ResponseValidator - strict schema validation with structured diagnostics."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from .models import ValidationInvalid, ValidationIssue, ValidationOutcome, ValidationValid
from .prompts import build_repair_prompt

logger = logging.getLogger(__name__)

Normalizer = Callable[[Any], Any]


def _format_path(loc: Sequence[int | str]) -> str:
    return ".".join(str(part) for part in loc)


def issues_from_error(err: ValidationError) -> list[ValidationIssue]:
    """Flatten a pydantic ``ValidationError`` into ``(path, message)`` issues."""
    return [
        ValidationIssue(path=_format_path(detail["loc"]), message=detail["msg"])
        for detail in err.errors(include_url=False)
    ]


class ResponseValidator:
    """
    Validates parsed JSON against a pydantic model.

    ``validate`` is strict. ``normalize_and_validate`` runs a lenient
    normalizer first so near-miss output is recovered without weakening
    the schema itself.
    """

    def validate(self, value: Any, schema: type[BaseModel]) -> ValidationOutcome:
        try:
            data = schema.model_validate(value)
        except ValidationError as err:
            issues = issues_from_error(err)
            logger.debug(
                "Validation against %s failed with %d issue(s).",
                schema.__name__,
                len(issues),
            )
            return ValidationInvalid(issues=issues)
        return ValidationValid(data=data)

    def normalize_and_validate(
        self,
        value: Any,
        schema: type[BaseModel],
        normalizer: Normalizer | None = None,
    ) -> ValidationOutcome:
        if normalizer is not None:
            value = normalizer(value)
        return self.validate(value, schema)

    def build_repair_prompt(
        self,
        original_prompt: str,
        invalid_output: Any,
        issues: Sequence[ValidationIssue | str],
    ) -> str:
        return build_repair_prompt(original_prompt, invalid_output, issues)
