# parsing.py
# Recovers a JSON value from free-form planning-service text.
#
# The service is not trusted to emit valid JSON: responses arrive wrapped in
# code fences, preceded by prose, sprinkled with // comments, or with
# trailing commas. Everything here is string-aware so URLs and quoted
# braces inside values survive cleaning.

import json
import re
from typing import Any

from tool_orchestrator.errors import PlanParseError

_FENCE_OPEN = re.compile(r"```(?:json|JSON)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")
_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fences(text: str) -> str:
    text = text.strip()
    text = _FENCE_OPEN.sub("", text, count=1)
    return _FENCE_CLOSE.sub("", text)


def extract_balanced(text: str, opener: str = "{") -> str | None:
    """Return the first balanced `{...}` or `[...]` span in `text`, or None."""
    start = text.find(opener)
    if start < 0:
        return None

    in_string = False
    escaped = False
    stack: list[str] = []

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if not stack or stack[-1] != char:
                return None
            stack.pop()
            if not stack:
                return text[start : index + 1]
    return None


def _skip_blank(raw: str, index: int) -> int:
    """Index of the next character that is neither whitespace nor a comment."""
    length = len(raw)
    while index < length:
        if raw[index].isspace():
            index += 1
        elif raw.startswith("//", index):
            newline = raw.find("\n", index)
            index = length if newline < 0 else newline
        elif raw.startswith("/*", index):
            end = raw.find("*/", index + 2)
            index = length if end < 0 else end + 2
        else:
            break
    return index


def clean_json(raw: str) -> str:
    """Drop // and /* */ comments and trailing commas outside string literals."""
    out: list[str] = []
    index = 0
    length = len(raw)
    in_string = False
    escaped = False

    while index < length:
        char = raw[index]

        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            index += 1
            continue

        if char == '"':
            in_string = True
            out.append(char)
            index += 1
        elif raw.startswith("//", index):
            newline = raw.find("\n", index)
            index = length if newline < 0 else newline
        elif raw.startswith("/*", index):
            end = raw.find("*/", index + 2)
            index = length if end < 0 else end + 2
        elif char == ",":
            lookahead = _skip_blank(raw, index + 1)
            if lookahead < length and raw[lookahead] in "}]":
                index += 1
            else:
                out.append(char)
                index += 1
        else:
            out.append(char)
            index += 1

    return "".join(out).strip()


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse the first JSON object found in `text`.

    Raises PlanParseError when no object can be recovered.
    """
    raw = extract_balanced(strip_code_fences(text), "{")
    if raw is None:
        raise PlanParseError("No JSON object found in planning-service response.")
    try:
        value = json.loads(clean_json(raw), strict=False)
    except json.JSONDecodeError as exc:
        raise PlanParseError(f"JSON object is malformed: {exc}") from exc
    if not isinstance(value, dict):
        raise PlanParseError("Expected a JSON object.")
    return value


def parse_json_steps(text: str) -> list[Any]:
    """
    Parse a list of steps: either a bare JSON array or an object with a
    `steps` array, whichever opens first in the text.
    """
    body = strip_code_fences(text)
    array_at = body.find("[")
    object_at = body.find("{")

    if array_at < 0 and object_at < 0:
        raise PlanParseError("No JSON array found in planning-service response.")

    if object_at >= 0 and (array_at < 0 or object_at < array_at):
        value = parse_json_object(body)
        steps = value.get("steps")
        if not isinstance(steps, list):
            raise PlanParseError("JSON object has no 'steps' array.")
        return steps

    raw = extract_balanced(body, "[")
    if raw is None:
        raise PlanParseError("Unbalanced JSON array in planning-service response.")
    try:
        value = json.loads(clean_json(raw), strict=False)
    except json.JSONDecodeError as exc:
        raise PlanParseError(f"JSON array is malformed: {exc}") from exc
    if not isinstance(value, list):
        raise PlanParseError("Expected a JSON array.")
    return value
