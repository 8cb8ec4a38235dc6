import pytest

from tool_orchestrator.errors import PlanParseError
from tool_orchestrator.parsing import (
    clean_json,
    extract_balanced,
    parse_json_object,
    parse_json_steps,
    strip_code_fences,
)

# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_extract_balanced_ignores_braces_inside_strings():
    text = 'Sure! {"note": "use } carefully", "n": {"x": 1}} trailing {"b": 2}'
    assert extract_balanced(text) == '{"note": "use } carefully", "n": {"x": 1}}'


def test_extract_balanced_arrays_and_missing_spans():
    assert extract_balanced("x [1, [2, 3]] y", "[") == "[1, [2, 3]]"
    assert extract_balanced("no json here") is None
    assert extract_balanced('{"open": true', "{") is None


def test_clean_json_keeps_urls_and_drops_comments():
    raw = '{\n  "url": "http://example.com/a,b", // where\n  /* block */ "n": [1, 2,],\n}'
    assert clean_json(raw) == '{\n  "url": "http://example.com/a,b", \n   "n": [1, 2]\n}'


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def test_parse_object_from_chatty_fenced_reply():
    reply = """Here is the plan:
```json
{
  "initialResponse": "On it",
  "steps": [
    {"stepNumber": 1, "tool": "list_tables", "arguments": {},}, // discovery
  ],
}
```"""
    parsed = parse_json_object(reply)
    assert parsed["initialResponse"] == "On it"
    assert parsed["steps"][0]["tool"] == "list_tables"


def test_parse_object_tolerates_literal_newlines_in_strings():
    parsed = parse_json_object('{"answer": "line one\nline two"}')
    assert parsed["answer"] == "line one\nline two"


@pytest.mark.parametrize("reply", ["", "I cannot help with that.", "{broken: json}", "[1, 2]"])
def test_parse_object_failures(reply):
    with pytest.raises(PlanParseError):
        parse_json_object(reply)


def test_parse_steps_accepts_array_or_wrapped_object():
    assert parse_json_steps('[{"tool": "a"}]') == [{"tool": "a"}]
    assert parse_json_steps('{"steps": [{"tool": "b"}]}') == [{"tool": "b"}]
    assert parse_json_steps("Next:\n```\n[]\n```") == []


@pytest.mark.parametrize("reply", ["nothing", '{"plan": []}', "[1, 2"])
def test_parse_steps_failures(reply):
    with pytest.raises(PlanParseError):
        parse_json_steps(reply)
