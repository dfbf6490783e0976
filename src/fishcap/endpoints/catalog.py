"""Built-in structured endpoints: prompt templates, schemas and fallbacks."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fishcap.routing.models import Task
from fishcap.validation.normalize import normalize_diagnosis, normalize_grade
from fishcap.validation.schemas import GradeResponse, Step4Diagnose

from .fallbacks import fallback_diagnosis, fallback_grade
from .models import EndpointSpec

GRADE_SYSTEM_PROMPT = """
You are a precise educational grading assistant. Grade the student's answer against
the expected answer using the rubric criteria.

OUTPUT FORMAT (STRICT JSON):
{
  "score": 0.0-1.0,
  "feedback": "Concise explanation of the grade (1-3 sentences).",
  "barrierTags": ["Concept" | "Mechanics" | "Transfer" | "Communication"],
  "fixKit": {
    "microTasks": ["10-min actionable micro-task", "..."],
    "miniQuiz": {"question": "...", "choices": ["A", "B", "C", "D"], "answer": "B"}
  }
}

BARRIER TAGS:
- "Concept": does not grasp the underlying concept
- "Mechanics": knows the concept but cannot apply the procedure
- "Transfer": cannot apply knowledge to new contexts
- "Communication": knows the answer but cannot articulate it clearly
""".strip()

DIAGNOSE_SYSTEM_PROMPT = """
Diagnose student struggles based on quiz performance.
Return a barrier tag, evidence, and a micro-plan.

Output format (JSON):
{
  "overallTag": "Concept" | "Mechanics" | "Transfer" | "Communication",
  "evidence": ["Point 1"],
  "microPlan": ["10-minute task"],
  "reviewPlan": [{"in": "1d" | "3d" | "7d"}]
}
""".strip()


def render_grade_prompt(inputs: Mapping[str, Any]) -> str:
    rubric = inputs.get("rubric") or []
    lines = [
        f"Question: {inputs.get('question', '')}",
        "",
        f"Expected Answer: {inputs.get('expectedAnswer', '')}",
        "",
        f"Student's Answer: {inputs.get('userAnswer', '')}",
    ]
    if rubric:
        lines += ["", "Rubric criteria:"]
        lines += [f"{index}. {criterion}" for index, criterion in enumerate(rubric, start=1)]
    if inputs.get("context"):
        lines += ["", f"Context: {inputs['context']}"]
    lines += ["", "Grade this answer and provide feedback with a Fix Kit."]
    return "\n".join(lines)


def render_diagnose_prompt(inputs: Mapping[str, Any]) -> str:
    rows = [
        f"Q: {item.get('question', '')} | Correct: {bool(item.get('isCorrect'))} | "
        f"Tag: {item.get('barrierTag', '')}"
        for item in inputs.get("results") or []
        if isinstance(item, Mapping)
    ]
    return "Results:\n" + "\n".join(rows)


GRADE_ENDPOINT = EndpointSpec(
    name="grade",
    task=Task.grade_short_answer,
    system_prompt=GRADE_SYSTEM_PROMPT,
    output_model=GradeResponse,
    render_prompt=render_grade_prompt,
    fallback=fallback_grade,
    normalizer=normalize_grade,
    timeout_ms=25_000,
)

DIAGNOSE_ENDPOINT = EndpointSpec(
    name="diagnose",
    task=Task.step4_diagnose,
    system_prompt=DIAGNOSE_SYSTEM_PROMPT,
    output_model=Step4Diagnose,
    render_prompt=render_diagnose_prompt,
    fallback=fallback_diagnosis,
    normalizer=normalize_diagnosis,
    timeout_ms=30_000,
)
