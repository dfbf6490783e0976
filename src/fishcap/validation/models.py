"""Validation outcome models."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict


class ValidationIssue(BaseModel):
    """One schema violation: dotted field path plus a readable message."""

    model_config = ConfigDict(frozen=True)

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"


class ValidationValid(BaseModel):
    valid: Literal[True] = True
    data: Any


class ValidationInvalid(BaseModel):
    valid: Literal[False] = False
    issues: list[ValidationIssue]


ValidationOutcome = Union[ValidationValid, ValidationInvalid]
