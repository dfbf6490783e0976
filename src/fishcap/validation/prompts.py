"""Deterministic repair prompt builder for the single re-ask cycle."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from .models import ValidationIssue

# Maximum number of characters of the invalid output echoed back to the model.
_MAX_OUTPUT_CHARS = 500


def _truncate(text: str, limit: int = _MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit]


def _render_output(invalid_output: Any) -> str:
    if isinstance(invalid_output, str):
        return invalid_output
    try:
        return json.dumps(invalid_output, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(invalid_output)


def build_repair_prompt(
    original_prompt: str,
    invalid_output: Any,
    issues: Sequence[ValidationIssue | str],
) -> str:
    """
    Compose a follow-up instruction asking the model to correct its own output.

    Embeds every issue as a bullet, the original request, and at most 500
    characters of the rejected output.
    """
    bullets = [f"- {issue}" for issue in issues] or ["- Output did not match the required schema."]

    sections: list[str] = [
        "The previous response was invalid. Please fix the following errors and return valid JSON:",
        "",
        "ERRORS:",
        *bullets,
        "",
        "ORIGINAL REQUEST:",
        original_prompt,
        "",
        "INVALID OUTPUT:",
        _truncate(_render_output(invalid_output)),
        "",
        "Return ONLY valid JSON matching the required schema. No markdown, no extra text.",
    ]
    return "\n".join(sections)
