from __future__ import annotations

import math

import pytest

from fishcap.validation.normalize import (
    DEFAULT_MICRO_TASK,
    clamp_unit,
    coerce_enum,
    coerce_enum_list,
    normalize_diagnosis,
    normalize_grade,
    truncate_text,
)
from fishcap.validation.models import ValidationValid
from fishcap.validation.schemas import BarrierTag, GradeResponse
from fishcap.validation.validator import ResponseValidator


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1.5, 1.0),
        (-3, 0.0),
        (0.42, 0.42),
        ("0.8", 0.8),
        ("high", 0.0),
        (True, 0.0),
        (None, 0.0),
        (math.nan, 0.0),
    ],
)
def test_clamp_unit(raw: object, expected: float) -> None:
    assert clamp_unit(raw) == expected


def test_truncate_text() -> None:
    assert truncate_text("short", 10) == "short"
    truncated = truncate_text("a" * 20, 10)
    assert len(truncated) == 10
    assert truncated.endswith("...")
    assert truncate_text(42, 1) == 42


@pytest.mark.parametrize(
    "raw",
    ["Concept", "concept", "  CONCEPT ", "barrier: concept", "#Concept", "tag=concept"],
)
def test_coerce_enum_variants(raw: str) -> None:
    assert coerce_enum(raw, BarrierTag) is BarrierTag.Concept


def test_coerce_enum_unknown() -> None:
    assert coerce_enum("Motivation", BarrierTag) is None
    assert coerce_enum(3, BarrierTag) is None
    assert coerce_enum("", BarrierTag) is None


def test_coerce_enum_list_drops_unknowns_and_duplicates() -> None:
    tags = coerce_enum_list(["mechanics", "Mechanics", "nonsense", "transfer"], BarrierTag)
    assert tags == [BarrierTag.Mechanics, BarrierTag.Transfer]


def test_coerce_enum_list_accepts_single_string_and_caps() -> None:
    assert coerce_enum_list("concept", BarrierTag) == [BarrierTag.Concept]
    everything = ["Concept", "Mechanics", "Transfer", "Communication"]
    assert len(coerce_enum_list(everything, BarrierTag, max_items=3)) == 3
    assert coerce_enum_list({"a": 1}, BarrierTag) == []


def test_normalize_grade_fills_defaults() -> None:
    normalized = normalize_grade({"score": "2", "feedback": "ok", "barrierTags": ["???"]})

    assert normalized["score"] == 1.0
    assert normalized["barrierTags"] == ["Concept"]
    assert normalized["fixKit"] == {"microTasks": [DEFAULT_MICRO_TASK]}


def test_normalize_grade_trims_lists_and_feedback() -> None:
    normalized = normalize_grade(
        {
            "score": 0.3,
            "feedback": "f" * 1500,
            "barrierTags": ["mechanics"],
            "fixKit": {
                "microTasks": ["one", " ", "two", "three", "four"],
                "miniQuiz": {"question": "Q?", "choices": ["a", "b"], "answer": "a"},
            },
        }
    )

    assert len(normalized["feedback"]) == 1000
    assert normalized["fixKit"]["microTasks"] == ["one", "two", "three"]
    assert normalized["fixKit"]["miniQuiz"]["answer"] == "a"


def test_normalize_grade_passes_through_non_mapping() -> None:
    assert normalize_grade("nope") == "nope"


def test_normalize_diagnosis() -> None:
    normalized = normalize_diagnosis(
        {
            "overallTag": "tag: transfer",
            "evidence": ["a", "b", "c", "d", "e", "f"],
            "microPlan": ["x"],
            "reviewPlan": [{"in": "1D"}, "3d", {"in": "2w"}],
        }
    )

    assert normalized["overallTag"] == "Transfer"
    assert len(normalized["evidence"]) == 5
    assert normalized["reviewPlan"] == [{"in": "1d"}, {"in": "3d"}]


def test_normalize_grade_drops_incomplete_mini_quiz() -> None:
    normalized = normalize_grade(
        {
            "score": 0.7,
            "feedback": "Mostly right.",
            "barrierTags": ["Mechanics"],
            "fixKit": {"microTasks": ["Practice"], "miniQuiz": {"question": "Q?", "choices": ["a", "b"]}},
        }
    )
    assert "miniQuiz" not in normalized["fixKit"]

    outcome = ResponseValidator().validate(normalized, GradeResponse)
    assert isinstance(outcome, ValidationValid)
    assert outcome.data.score == 0.7
    assert outcome.data.fix_kit.mini_quiz is None


def test_normalize_grade_caps_mini_quiz_choices() -> None:
    normalized = normalize_grade(
        {
            "score": 0.5,
            "feedback": "ok",
            "fixKit": {
                "microTasks": ["x"],
                "miniQuiz": {"question": "Pick one", "choices": list("abcdefgh"), "answer": "c"},
            },
        }
    )
    assert normalized["fixKit"]["miniQuiz"]["choices"] == ["a", "b", "c", "d", "e", "f"]


def test_normalize_grade_ignores_string_choices() -> None:
    normalized = normalize_grade(
        {
            "score": 0.5,
            "feedback": "ok",
            "fixKit": {"microTasks": ["x"], "miniQuiz": {"question": "Q?", "choices": "abc", "answer": "a"}},
        }
    )
    assert normalized["fixKit"]["miniQuiz"]["choices"] == []
