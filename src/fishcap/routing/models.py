"""Pydantic models for task-to-model routing."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Task(str, Enum):
    """Logical unit of work used to look up a model policy."""

    step1_explain = "step1_explain"
    step2_synthesize = "step2_synthesize"
    step3_quiz = "step3_quiz"
    step4_diagnose = "step4_diagnose"
    concepts = "concepts"
    outline = "outline"
    slides_explain_batch = "slides_explain_batch"
    feedback = "feedback"
    cornell = "cornell"
    grade_short_answer = "grade_short_answer"
    embedding = "embedding"


class ModelPolicy(BaseModel):
    """Ordered model list for one task. Index 0 is the primary."""

    model_config = ConfigDict(frozen=True)

    primary: str = Field(min_length=1)
    fallbacks: tuple[str, ...] = ()

    @property
    def models(self) -> tuple[str, ...]:
        return (self.primary, *self.fallbacks)


class RouteResult(BaseModel):
    """The model chosen for a single attempt."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model: str
    is_fallback: bool
    model_index: int = Field(ge=0)
    exhausted: bool = Field(
        default=False,
        description="True when the attempt index ran past the last model and was clamped",
    )
