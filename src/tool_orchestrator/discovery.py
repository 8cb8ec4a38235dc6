# discovery.py
# Mines concrete facts (resource names, fields, counts, schemas, data types,
# prior errors) from rendered execution history so the refiner plans against
# real names instead of placeholders.
#
# The pattern table below is data: bump PATTERN_TABLE_VERSION whenever a
# family changes. Output is advisory only; an empty DiscoverySet never
# blocks execution.

import json
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from tool_orchestrator.formatter import extract_detailed_result
from tool_orchestrator.models import ExecutionRecord, Step

PATTERN_TABLE_VERSION = "3"

_IDENT = r"[a-zA-Z_][a-zA-Z0-9_]*"
_OPEN_QUOTE = r"(?:\\?['\"`])?"
# a name reported missing was not discovered
_NOT_MISSING = r"\b(?![\\'\"`]*\s+(?:does not exist|not found))"
_IDENT_LIST = rf"{_IDENT}(?:\s*,\s*{_IDENT})*"
_IM = re.IGNORECASE | re.MULTILINE

STOP_WORDS: frozenset[str] = frozenset(
    {
        "schema", "result", "status", "true", "false", "data", "rows", "columns",
        "error", "metadata", "content", "title", "type", "unknown",
    }
)

MAX_ERROR_SNIPPET = 100
MAX_RENDERED_ERRORS = 2


def _split_names(value: str) -> list[str]:
    return [part.strip().strip("'\"`") for part in value.split(",")]


def _split_fields(value: str) -> list[str]:
    return [part for part in re.split(r"[',\"\s]+", value) if part]


def _single(value: str) -> list[str]:
    return [value]


def _keep_resource(value: str) -> bool:
    return len(value) > 2 and value.lower() not in STOP_WORDS


def _keep_field(value: str) -> bool:
    return len(value) > 1 and re.match(r"[a-zA-Z_]", value) is not None


def _keep_count(value: str) -> bool:
    return value.isdigit()


def _keep_schema(value: str) -> bool:
    return len(value) > 1 and value.lower() not in STOP_WORDS


def _keep_type(value: str) -> bool:
    return len(value) > 1


def _keep_error(value: str) -> bool:
    return len(value) > 5


@dataclass(frozen=True)
class PatternFamily:
    """One discovery category: its regexes and how to split and filter captures."""

    category: str
    patterns: tuple[re.Pattern, ...]
    split: Callable[[str], list[str]]
    keep: Callable[[str], bool]
    max_length: int | None = None

    def scan(self, text: str) -> set[str]:
        found: set[str] = set()
        for pattern in self.patterns:
            for match in pattern.finditer(text):
                captured = match.group(1)
                if not captured:
                    continue
                for value in self.split(captured):
                    value = value.strip()
                    if self.max_length is not None:
                        value = value[: self.max_length].strip()
                    if value and self.keep(value):
                        found.add(value)
        return found


PATTERN_TABLE: tuple[PatternFamily, ...] = (
    PatternFamily(
        category="resources",
        patterns=(
            re.compile(rf"(?:^|\s)(?:FROM|JOIN|INTO|UPDATE)\s+{_OPEN_QUOTE}({_IDENT}){_NOT_MISSING}", _IM),
            re.compile(rf"TABLE_NAME\s*[:=]\s*({_IDENT})", _IM),
            re.compile(rf"table\s*[:=]\s*({_IDENT})", _IM),
            re.compile(
                rf"\b(?:accession|table_name|tableName|table)['\"]?\s*[:=]\s*['\"`]({_IDENT})['\"`]",
                _IM,
            ),
            re.compile(rf"\"(?:tables|table_names|tableNames)\"\s*:\s*\[([^\]]*)\]", _IM),
            re.compile(rf"\b(?:table|relation)\s+\\?['\"`]({_IDENT}){_NOT_MISSING}", _IM),
            re.compile(rf"^\s*\d+\.\s+({_IDENT})\s*$", _IM),
            re.compile(
                rf"(?:available|discovered|existing|found)\s+(?:tables?|schemas?)\s*[:=]?\s*({_IDENT_LIST})",
                _IM,
            ),
        ),
        split=_split_names,
        keep=_keep_resource,
    ),
    PatternFamily(
        category="fields",
        patterns=(
            re.compile(rf"(?:COLUMN|column)\s*[:\s=]+({_IDENT_LIST})", _IM),
            re.compile(r"columns?\s*[:=]\s*\[\s*'([^']+(?:'\s*,\s*'[^']+)*)'\s*\]", _IM),
            re.compile(r"columns?\"?\s*[:=]\s*\[\s*\"([^\"]+(?:\"\s*,\s*\"[^\"]+)*)\"\s*\]", _IM),
            re.compile(r"columns?\s*[:=]\s*\"([^\"]+(?:\"\s*,\s*\"[^\"]+)*)\"", _IM),
            re.compile(rf"(?:fields?|attributes?)\s*[:=]\s*({_IDENT_LIST})", _IM),
            re.compile(rf"\{{\s*\"name\"\s*:\s*\"({_IDENT})\"\s*,\s*\"type\"", _IM),
        ),
        split=_split_fields,
        keep=_keep_field,
    ),
    PatternFamily(
        category="counts",
        patterns=(
            re.compile(r"(?:count|total|rows?|results?)\s*[:=]\s*(\d+)", _IM),
            re.compile(r"total(?:Rows|Results)\s*[:=]\s*(\d+)", _IM),
            re.compile(r"\b(\d+)\s+(?:rows?|records?|entries?)\b", _IM),
        ),
        split=_single,
        keep=_keep_count,
    ),
    PatternFamily(
        category="schemas",
        patterns=(
            re.compile(rf"(?:database|schema|catalog)\s*[:=]\s*({_IDENT})", _IM),
            re.compile(rf"service\s*[:=]\s*['\"`]?({_IDENT})['\"`]?", _IM),
        ),
        split=_single,
        keep=_keep_schema,
    ),
    PatternFamily(
        category="data_types",
        patterns=(
            re.compile(r"(?:type|datatype)\s*[:=]\s*['\"`]?(\w+)['\"`]?", _IM),
            re.compile(
                r":\s*(string|int|integer|varchar|text|boolean|date|timestamp|float|double|decimal|bigint)\b",
                _IM,
            ),
        ),
        split=_single,
        keep=_keep_type,
    ),
    PatternFamily(
        category="errors",
        patterns=(re.compile(r"(?:error|failed|not found|does not exist)[:\s]*([^\n]+)", _IM),),
        split=_single,
        keep=_keep_error,
        max_length=MAX_ERROR_SNIPPET,
    ),
)


@dataclass(frozen=True)
class DiscoverySet:
    resources: frozenset[str] = frozenset()
    fields: frozenset[str] = frozenset()
    counts: frozenset[str] = frozenset()
    schemas: frozenset[str] = frozenset()
    data_types: frozenset[str] = frozenset()
    errors: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.resources, self.fields, self.counts, self.schemas, self.data_types, self.errors)
        )

    def has_resource(self, name: str) -> bool:
        lowered = name.lower()
        return any(resource.lower() == lowered for resource in self.resources)

    def render(self) -> str:
        """Advisory report injected into the refiner prompt."""
        lines: list[str] = []
        if self.resources:
            lines.append(f"DISCOVERED TABLES: {', '.join(sorted(self.resources))}")
        if self.fields:
            lines.append(f"DISCOVERED COLUMNS: {', '.join(sorted(self.fields))}")
        if self.counts:
            ordered = sorted(self.counts, key=int)
            lines.append(f"DISCOVERED COUNTS: {', '.join(ordered)} rows/records")
        if self.schemas:
            lines.append(f"DISCOVERED SCHEMAS: {', '.join(sorted(self.schemas))}")
        if self.data_types:
            lines.append(f"DISCOVERED DATA TYPES: {', '.join(sorted(self.data_types))}")
        if self.errors:
            shown = sorted(self.errors)[:MAX_RENDERED_ERRORS]
            lines.append(f"KNOWN ERRORS TO AVOID: {'; '.join(shown)}")
        if not lines:
            return "No concrete data discovered yet - focus on discovery steps first."
        return "\n".join(lines)


def normalize_history(text: str) -> str:
    """Collapse intra-line whitespace and drop blank lines."""
    lines = (re.sub(r"[ \t\r\f\v]+", " ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def render_history(steps: Iterable[Step]) -> str:
    """Execution history with full results, one block per completed step."""
    completed = [step for step in steps if step.completed]
    if not completed:
        return "No steps completed yet."

    blocks = [f"EXECUTION HISTORY ({len(completed)} steps completed):", ""]
    for step in completed:
        blocks.append(f"STEP {step.step_number}: {step.title or f'Step {step.step_number}'}")
        blocks.append(f"Tool Used: {step.tool or 'unknown'}")
        blocks.append(f"Arguments: {_dump_arguments(step.arguments)}")
        blocks.append(f"RESULT: {extract_detailed_result(step.result)}")
        blocks.append("STATUS: SUCCESS")
        blocks.append("")
    return "\n".join(blocks)


def render_records(records: Iterable[ExecutionRecord]) -> str:
    steps = [
        Step(
            step_number=record.step,
            tool=record.tool_name,
            arguments=record.arguments,
            reasoning=record.reasoning,
            result=record.result,
            completed=True,
        )
        for record in records
    ]
    return render_history(steps)


def _dump_arguments(arguments: dict) -> str:
    return json.dumps(arguments or {}, default=str)


def extract(history: str | Iterable[ExecutionRecord]) -> DiscoverySet:
    """Run every pattern family over the history. Pure and order-independent."""
    text = history if isinstance(history, str) else render_records(history)
    text = normalize_history(text)
    found = {family.category: family.scan(text) for family in PATTERN_TABLE}
    return DiscoverySet(**{category: frozenset(values) for category, values in found.items()})
