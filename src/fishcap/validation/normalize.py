"""
Lenient coercion applied to untrusted model output before strict validation.

Normalizers never raise. They repair near-misses (out-of-range scores, enum
casing, over-long text) and leave anything unrecoverable for the validator
to report.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, TypeVar

from .schemas import BarrierTag

E = TypeVar("E", bound=Enum)

_ENUM_PREFIX_PATTERN = re.compile(r"^\s*(?:#|(?:barrier|tag|type|category)\s*[:=_-]\s*)", re.IGNORECASE)

FEEDBACK_MAX_CHARS = 1000
MICRO_TASK_MAX_ITEMS = 3
BARRIER_TAG_MAX_ITEMS = 3
MINI_QUIZ_MAX_CHOICES = 6
DEFAULT_MICRO_TASK = "Review the concept and try again"


def clamp_unit(value: Any, default: float = 0.0) -> float:
    """Clamp a confidence-like score into ``[0, 1]``. Non-numbers become ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or value != value:
        return default
    return max(0.0, min(1.0, float(value)))


def truncate_text(value: Any, max_chars: int, *, suffix: str = "...") -> Any:
    """Truncate strings longer than ``max_chars``; other values pass through."""
    if not isinstance(value, str) or len(value) <= max_chars:
        return value
    if max_chars <= len(suffix):
        return value[:max_chars]
    return value[: max_chars - len(suffix)].rstrip() + suffix


def coerce_enum(value: Any, enum_cls: type[E]) -> E | None:
    """
    Map ``value`` onto a member of ``enum_cls``.

    Matching is case-insensitive and ignores prefixes such as ``barrier:``,
    ``tag=`` or ``#``. Returns ``None`` when no member matches.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None

    candidate = _ENUM_PREFIX_PATTERN.sub("", value).strip().strip("\"'").lower()
    if not candidate:
        return None

    for member in enum_cls:
        if candidate in (str(member.value).lower(), member.name.lower()):
            return member
    return None


def coerce_enum_list(values: Any, enum_cls: type[E], *, max_items: int | None = None) -> list[E]:
    """Coerce each entry, drop unknowns and duplicates, keep first-seen order."""
    if isinstance(values, (str, Enum)):
        values = [values]
    if not isinstance(values, Iterable) or isinstance(values, Mapping):
        return []

    members: list[E] = []
    for raw in values:
        member = coerce_enum(raw, enum_cls)
        if member is not None and member not in members:
            members.append(member)
    if max_items is not None:
        members = members[:max_items]
    return members


def _string_list(values: Any, *, max_items: int) -> list[str]:
    if not isinstance(values, list):
        return []
    return [str(item).strip() for item in values if str(item).strip()][:max_items]


def _normalize_mini_quiz(raw: Any) -> dict[str, Any] | None:
    # Incomplete quizzes are dropped; the fix kit stays valid without one.
    if not isinstance(raw, Mapping):
        return None
    question = str(raw.get("question") or "").strip()
    answer = str(raw.get("answer") or "").strip()
    if not question or not answer:
        return None
    return {
        "question": question,
        "choices": _string_list(raw.get("choices"), max_items=MINI_QUIZ_MAX_CHOICES),
        "answer": answer,
    }


def normalize_grade(data: Any) -> Any:
    """Normalize a raw grading payload into the ``GradeResponse`` shape."""
    if not isinstance(data, Mapping):
        return data

    tags = coerce_enum_list(data.get("barrierTags"), BarrierTag, max_items=BARRIER_TAG_MAX_ITEMS)

    fix_kit_raw = data.get("fixKit")
    fix_kit = fix_kit_raw if isinstance(fix_kit_raw, Mapping) else {}
    micro_tasks = _string_list(fix_kit.get("microTasks"), max_items=MICRO_TASK_MAX_ITEMS)

    normalized_fix_kit: dict[str, Any] = {"microTasks": micro_tasks or [DEFAULT_MICRO_TASK]}
    mini_quiz = _normalize_mini_quiz(fix_kit.get("miniQuiz"))
    if mini_quiz is not None:
        normalized_fix_kit["miniQuiz"] = mini_quiz

    feedback = data.get("feedback")
    return {
        "score": clamp_unit(data.get("score")),
        "feedback": truncate_text(feedback, FEEDBACK_MAX_CHARS) if isinstance(feedback, str) else feedback,
        "barrierTags": [tag.value for tag in tags] or [BarrierTag.Concept.value],
        "fixKit": normalized_fix_kit,
    }


def normalize_diagnosis(data: Any) -> Any:
    """Normalize a raw diagnosis payload into the ``Step4Diagnose`` shape."""
    if not isinstance(data, Mapping):
        return data

    normalized = dict(data)
    tag = coerce_enum(data.get("overallTag"), BarrierTag)
    if tag is not None:
        normalized["overallTag"] = tag.value

    if isinstance(data.get("evidence"), list):
        normalized["evidence"] = _string_list(data["evidence"], max_items=5)
    if isinstance(data.get("microPlan"), list):
        normalized["microPlan"] = _string_list(data["microPlan"], max_items=3)

    review_plan = data.get("reviewPlan")
    if isinstance(review_plan, list):
        items = []
        for item in review_plan:
            interval = item.get("in") if isinstance(item, Mapping) else item
            if isinstance(interval, str) and interval.strip().lower() in ("1d", "3d", "7d"):
                items.append({"in": interval.strip().lower()})
        normalized["reviewPlan"] = items[:3]

    return normalized
