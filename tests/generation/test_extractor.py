from __future__ import annotations

import pytest

from fishcap.errors import ResponseParseError
from fishcap.generation.extractor import find_embedded_json, parse_json_response, strip_json_fence

_PAYLOAD = '{"page": 1, "plain": "x", "example": "y", "takeaway": "z"}'


@pytest.mark.parametrize(
    "wrapped",
    [
        f"```json\n{_PAYLOAD}\n```",
        f"```json{_PAYLOAD}```",
        f"```\n{_PAYLOAD}\n```",
        f"  \n```json\n{_PAYLOAD}\n```\n",
    ],
)
def test_fenced_json_parses_like_bare_json(wrapped: str) -> None:
    assert parse_json_response(wrapped) == parse_json_response(_PAYLOAD)


def test_strip_json_fence_leaves_plain_text_alone() -> None:
    assert strip_json_fence('  {"a": 1}  ') == '{"a": 1}'


def test_parses_arrays() -> None:
    assert parse_json_response("[1, 2, 3]") == [1, 2, 3]


def test_not_json_raises_parse_error() -> None:
    with pytest.raises(ResponseParseError, match="JSON parse failure"):
        parse_json_response("Not JSON at all")


def test_empty_response_raises_parse_error() -> None:
    with pytest.raises(ResponseParseError, match="empty"):
        parse_json_response("   ")


def test_lenient_mode_recovers_embedded_block() -> None:
    text = 'Sure! Here is the result: {"score": 0.5, "note": "use {braces}"} Hope it helps.'
    assert parse_json_response(text) == {"score": 0.5, "note": "use {braces}"}


def test_strict_mode_rejects_embedded_block() -> None:
    with pytest.raises(ResponseParseError):
        parse_json_response('prefix {"a": 1}', lenient=False)


def test_find_embedded_json_handles_escaped_quotes() -> None:
    text = 'x {"q": "say \\"hi\\" }", "n": [1, {"m": 2}]} trailing }'
    assert find_embedded_json(text) == '{"q": "say \\"hi\\" }", "n": [1, {"m": 2}]}'


def test_find_embedded_json_unbalanced_returns_none() -> None:
    assert find_embedded_json('{"a": [1, 2') is None
    assert find_embedded_json("no json here") is None
