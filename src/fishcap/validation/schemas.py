"""Output schemas for the built-in generation endpoints."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BarrierTag(str, Enum):
    """Why a learner is stuck on a concept."""

    Concept = "Concept"
    Mechanics = "Mechanics"
    Transfer = "Transfer"
    Communication = "Communication"


class _EndpointModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Step1Explain(_EndpointModel):
    """Per-page plain-language explanation."""

    page: int = Field(ge=1)
    plain: str = Field(max_length=600)
    example: str = Field(max_length=600)
    takeaway: str = Field(max_length=150)


class Step2Synthesize(_EndpointModel):
    """Cross-page summary."""

    key_ideas: list[str] = Field(alias="keyIdeas", min_length=1, max_length=5)
    common_confusion: str = Field(alias="commonConfusion", max_length=300)
    exam_angle: str = Field(alias="examAngle", max_length=300)


class QuizQuestion(_EndpointModel):
    id: str = Field(min_length=1)
    type: Literal["mcq", "short"]
    prompt: str = Field(min_length=10)
    choices: list[str] | None = None
    answer: str = Field(min_length=1)
    why: str = Field(max_length=150)
    tag: BarrierTag


class Step3Quiz(_EndpointModel):
    questions: list[QuizQuestion] = Field(min_length=3, max_length=5)


class ReviewPlanItem(_EndpointModel):
    in_: Literal["1d", "3d", "7d"] = Field(alias="in")


class Step4Diagnose(_EndpointModel):
    """Barrier diagnosis plus a short study plan."""

    overall_tag: BarrierTag = Field(alias="overallTag")
    evidence: list[str] = Field(min_length=1, max_length=5)
    micro_plan: list[str] = Field(alias="microPlan", min_length=1, max_length=3)
    review_plan: list[ReviewPlanItem] = Field(alias="reviewPlan", min_length=1, max_length=3)


class MiniQuiz(_EndpointModel):
    question: str = Field(min_length=1)
    choices: list[str] = Field(default_factory=list, max_length=6)
    answer: str = Field(min_length=1)


class FixKit(_EndpointModel):
    micro_tasks: list[str] = Field(alias="microTasks", min_length=1, max_length=3)
    mini_quiz: MiniQuiz | None = Field(default=None, alias="miniQuiz")


class GradeResponse(_EndpointModel):
    """Graded short answer with targeted remediation."""

    score: float = Field(ge=0.0, le=1.0)
    feedback: str = Field(min_length=1, max_length=1000)
    barrier_tags: list[BarrierTag] = Field(alias="barrierTags", min_length=1, max_length=3)
    fix_kit: FixKit = Field(alias="fixKit")
