"""
Tests for defensive JSON extraction from model output.

Run with:
    python3 -m pytest tests/test_response_parser.py -v
"""

import json

import pytest

from services.response_parser import parse_json_response, strip_code_fence, find_structural_start
from utils.exceptions import ParseError, EmptyResponseError, NoStructuralTokenError, MalformedJsonError


PAYLOADS = [
    '{"questions": [{"question": "Q?", "options": ["a", "b"], "correct_answer": "a"}]}',
    '[{"term": "osmosis", "definition": "diffusion of water"}]',
    '{"panels": []}',
    '[]',
    '{"text": "contains ``` inside and [brackets] {braces}"}',
]


@pytest.mark.parametrize("payload", PAYLOADS)
def test_json_fence_is_transparent(payload):
    fenced = f"```json\n{payload}\n```"
    assert parse_json_response(fenced) == parse_json_response(payload) == json.loads(payload)


def test_bare_fence_is_stripped():
    assert parse_json_response('```\n{"a": 1}\n```') == {"a": 1}


def test_fence_without_newlines():
    assert parse_json_response('```json{"a": [1, 2]}```') == {"a": [1, 2]}


def test_leading_commentary_is_discarded():
    raw = 'Sure! Here is your quiz:\n{"questions": []}'
    assert parse_json_response(raw) == {"questions": []}


def test_commentary_before_fence():
    raw = 'Here you go:\n```json\n[1, 2, 3]\n```'
    assert parse_json_response(raw) == [1, 2, 3]


def test_first_structural_token_wins():
    assert parse_json_response('result: [{"a": 1}]') == [{"a": 1}]
    assert find_structural_start('abc [1] {"a": 1}') == 4
    assert find_structural_start('abc {"a": [1]}') == 4
    assert find_structural_start('no json here') == -1


@pytest.mark.parametrize("raw", ["", "   \n\t", None])
def test_empty_response(raw):
    with pytest.raises(EmptyResponseError):
        parse_json_response(raw)


def test_no_structural_token():
    with pytest.raises(NoStructuralTokenError):
        parse_json_response("I'm sorry, I cannot help with that.")


def test_malformed_json():
    with pytest.raises(MalformedJsonError):
        parse_json_response("{bad json")


def test_truncated_array_is_not_repaired():
    with pytest.raises(MalformedJsonError):
        parse_json_response('[{"term": "a", "definition": "b"}, {"term": "c"')


def test_trailing_commentary_is_not_tolerated():
    with pytest.raises(MalformedJsonError):
        parse_json_response('{"a": 1}\nLet me know if you need more!')


def test_all_failures_are_parse_errors():
    for raw in ["", "plain text", "{oops"]:
        with pytest.raises(ParseError):
            parse_json_response(raw)


def test_strip_code_fence_only_strips_one_marker():
    assert strip_code_fence("```python\nprint(1)\n```") == "print(1)"
    assert strip_code_fence("no fences") == "no fences"
