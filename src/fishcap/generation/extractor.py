"""JSON extraction for JSON-mode completion text."""

from __future__ import annotations

import json
import logging
import re
from json import JSONDecodeError
from typing import Any

from fishcap.errors import ResponseParseError

logger = logging.getLogger(__name__)

_OPEN_FENCE_PATTERN = re.compile(r"^```(?:json|JSON)?[ \t]*\n?")
_CLOSE_FENCE_PATTERN = re.compile(r"\n?```$")


def strip_json_fence(response_text: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if present."""
    stripped = response_text.strip()
    if stripped.startswith("```") and stripped.endswith("```") and len(stripped) >= 6:
        stripped = _OPEN_FENCE_PATTERN.sub("", stripped, count=1)
        stripped = _CLOSE_FENCE_PATTERN.sub("", stripped, count=1)
    return stripped.strip()


def find_embedded_json(text: str) -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` block in ``text``."""
    starts = [index for index in (text.find("{"), text.find("[")) if index >= 0]
    if not starts:
        return None

    start = min(starts)
    open_char = text[start]
    close_char = "}" if open_char == "{" else "]"

    depth = 0
    in_string = False
    escape = False
    for index in range(start, len(text)):
        char = text[index]
        if escape:
            escape = False
            continue
        if char == "\\":
            escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    return None


def parse_json_response(response_text: str, *, lenient: bool = True) -> Any:
    """
    Parse model output as a single JSON document.

    Fences are stripped first. With ``lenient`` set, prose around a single JSON
    block is tolerated. Raises ``ResponseParseError`` when nothing parses.
    """
    if not response_text or not response_text.strip():
        raise ResponseParseError("JSON parse failure: response text was empty.")

    cleaned = strip_json_fence(response_text)
    try:
        return json.loads(cleaned)
    except JSONDecodeError as err:
        first_error = err

    if lenient:
        embedded = find_embedded_json(cleaned)
        if embedded is not None and embedded != cleaned:
            try:
                return json.loads(embedded)
            except JSONDecodeError:
                logger.debug("Embedded JSON block did not parse either.")

    raise ResponseParseError(f"JSON parse failure: {first_error.msg}") from first_error
