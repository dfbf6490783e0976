"""Offline fallback builders used when generation fails or output is unusable."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Mapping
from typing import Any

from fishcap.validation.schemas import (
    BarrierTag,
    FixKit,
    GradeResponse,
    ReviewPlanItem,
    Step4Diagnose,
)
from fishcap.validation.normalize import coerce_enum

_WORD_PATTERN = re.compile(r"[a-z0-9]+")


def _tokens(text: str) -> set[str]:
    return {word for word in _WORD_PATTERN.findall(text.lower()) if len(word) > 2}


def overlap_score(answer: str, expected: str) -> float:
    """Share of the expected answer's content words present in ``answer``."""
    expected_tokens = _tokens(expected)
    if not expected_tokens:
        return 0.0
    return round(len(expected_tokens & _tokens(answer)) / len(expected_tokens), 2)


def fallback_grade(inputs: Mapping[str, Any]) -> GradeResponse:
    score = overlap_score(str(inputs.get("userAnswer", "")), str(inputs.get("expectedAnswer", "")))
    if score >= 0.8:
        feedback = "Your answer covers the key points of the expected answer."
        tag = BarrierTag.Communication
    elif score >= 0.4:
        feedback = "Your answer is partially correct; compare it with the expected answer for missing details."
        tag = BarrierTag.Mechanics
    else:
        feedback = "Your answer misses most of the expected answer. Revisit the core idea first."
        tag = BarrierTag.Concept

    return GradeResponse(
        score=score,
        feedback=feedback,
        barrierTags=[tag],
        fixKit=FixKit(
            microTasks=[
                "Re-read the relevant notes and restate the idea in one sentence.",
                "Write the expected answer from memory, then compare.",
                "Explain the concept aloud to an imaginary classmate.",
            ]
        ),
    )


def fallback_diagnosis(inputs: Mapping[str, Any]) -> Step4Diagnose:
    results = [item for item in inputs.get("results") or [] if isinstance(item, Mapping)]
    misses = [item for item in results if not item.get("isCorrect")]

    tag_counts: Counter[BarrierTag] = Counter()
    for item in misses:
        tag = coerce_enum(item.get("barrierTag"), BarrierTag)
        if tag is not None:
            tag_counts[tag] += 1
    overall = tag_counts.most_common(1)[0][0] if tag_counts else BarrierTag.Concept

    total = len(results)
    accuracy = (total - len(misses)) / total if total else 0.0
    evidence = [
        f"{total - len(misses)} of {total} questions answered correctly."
        if total
        else "No quiz results were provided."
    ]
    evidence.extend(f"Missed: {item.get('question', 'unnamed question')}" for item in misses[:4])

    intervals = ["1d", "3d", "7d"] if accuracy < 0.5 else ["3d", "7d"] if accuracy < 0.8 else ["7d"]
    return Step4Diagnose(
        overallTag=overall,
        evidence=evidence,
        microPlan=[
            f"Spend 10 minutes reviewing {overall.value.lower()} gaps from the missed questions.",
            "Re-attempt the missed questions without notes.",
        ],
        reviewPlan=[ReviewPlanItem.model_validate({"in": interval}) for interval in intervals],
    )
