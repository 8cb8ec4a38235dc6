# formatter.py
# Turns a terminal state into the structured final answer, and holds the
# result-summarisation helpers shared by events, the oracle and the refiner.

import json
from collections.abc import Mapping, Sequence
from typing import Any

from tool_orchestrator.models import (
    CompletionReason,
    ExecutionRecord,
    FinalResponse,
    Plan,
    StepSummary,
)

SUMMARY_LIMIT = 200

_DEFAULT_SATISFIED = "Task completed successfully based on the executed steps."

# Fixed lead-in per non-satisfied reason; the step summary is appended.
_REASON_MESSAGES: dict[CompletionReason, str] = {
    CompletionReason.MAX_STEPS_REACHED: (
        "I've executed {count} steps but couldn't fully complete the request. "
        "Here's what I found:"
    ),
    CompletionReason.TIMEOUT: (
        "The request took too long to process. Here's what I managed to gather:"
    ),
    CompletionReason.UNCLEAR: (
        "I couldn't determine the next step to take. Here's what I found so far:"
    ),
    CompletionReason.TOOL_NOT_FOUND: (
        "I couldn't find the required tool to continue processing."
    ),
    CompletionReason.ERROR: "An error occurred during processing: {detail}.",
    CompletionReason.MAX_RETRIES: (
        "A step kept failing after repeated retries, so I stopped. Last error: {detail}."
    ),
    CompletionReason.NO_ESTIMATION: (
        "I couldn't proceed because there was no step estimation to guide the process."
    ),
}


def _truncate(text: str, limit: int = SUMMARY_LIMIT) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _content_text(content: Sequence[Any], separator: str) -> str:
    return separator.join(
        str(item.get("text", ""))
        for item in content
        if isinstance(item, Mapping) and item.get("type") == "text"
    )


def summarize_result(result: Any) -> str:
    """Short, human-readable rendering of a tool result."""
    if result is None or result == "" or result == {} or result == []:
        return "No result"

    if isinstance(result, str):
        return _truncate(result)

    if isinstance(result, Mapping):
        if result.get("error"):
            return f"Error: {result['error']}"
        content = result.get("content")
        if isinstance(content, list):
            return _truncate(_content_text(content, " "))

    return json.dumps(result, default=str)[:SUMMARY_LIMIT] + "..."


def extract_detailed_result(result: Any) -> str:
    """Full rendering of a result for planning prompts. Nothing is truncated."""
    if result is None:
        return "No result"
    if not isinstance(result, Mapping):
        return result if isinstance(result, str) else json.dumps(result, default=str)

    if result.get("error") or result.get("isError"):
        detail = result.get("error") or _content_text(result.get("content") or [], "\n")
        return f"ERROR: {detail or 'Query execution failed'}"

    sections: list[str] = []
    data = result.get("data")
    if isinstance(data, Mapping):
        if isinstance(data.get("rows"), list):
            sections.append(f"ROWS: {json.dumps(data['rows'], default=str)}")
        if isinstance(data.get("columns"), list):
            sections.append(f"COLUMNS: {json.dumps(data['columns'], default=str)}")

    content = result.get("content")
    if isinstance(content, list):
        text = _content_text(content, "\n")
        if text:
            sections.append(f"CONTENT: {text}")

    if result.get("metadata"):
        sections.append(f"METADATA: {json.dumps(result['metadata'], default=str)}")
    if result.get("totalRows"):
        sections.append(f"TOTAL_ROWS: {result['totalRows']}")

    if not sections:
        return json.dumps(result, indent=2, default=str)
    return "\n".join(sections)


def summarize_results(results: Sequence[ExecutionRecord]) -> str:
    if not results:
        return "No data was gathered."
    return "; ".join(
        f"Step {index}: Used {record.tool_name} and {summarize_result(record.result)}"
        for index, record in enumerate(results, start=1)
    )


def format_response(
    results: Sequence[ExecutionRecord],
    reason: CompletionReason,
    plan: Plan | None = None,
    final_answer: Any = None,
) -> FinalResponse:
    """Map a completion reason and the gathered records to a FinalResponse."""
    summary = [
        StepSummary(step=record.step, tool=record.tool_name, summary=summarize_result(record.result))
        for record in results
    ]

    if reason is CompletionReason.SATISFIED:
        is_error = False
        ai_response = str(final_answer) if final_answer else _DEFAULT_SATISFIED
    else:
        is_error = True
        lead = _REASON_MESSAGES[reason].format(
            count=len(results),
            detail=str(final_answer) if final_answer else "unknown error",
        )
        ai_response = f"{lead} {summarize_results(results)}"

    return FinalResponse(
        is_error=is_error,
        ai_response=ai_response,
        execution_summary=summary,
        total_steps=len(results),
        completion_reason=reason,
        estimated_steps=plan.dump() if plan is not None else [],
    )
