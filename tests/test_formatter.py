import pytest

from tool_orchestrator.formatter import (
    extract_detailed_result,
    format_response,
    summarize_result,
    summarize_results,
)
from tool_orchestrator.models import CompletionReason, ExecutionRecord, Plan, Step

RECORDS = [
    ExecutionRecord(step=1, tool_name="list_tables", result={"tables": ["patients"]}),
    ExecutionRecord(step=2, tool_name="run_query", result="3 rows"),
]

# ---------------------------------------------------------------------------
# Result summaries
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("empty", [None, "", {}, []])
def test_summarize_empty(empty):
    assert summarize_result(empty) == "No result"


def test_summarize_strings_and_errors():
    assert summarize_result("short") == "short"
    assert summarize_result("y" * 300) == "y" * 200 + "..."
    assert summarize_result({"error": "table missing"}) == "Error: table missing"


def test_summarize_text_content():
    result = {"content": [{"type": "text", "text": "hello"}, {"type": "image"}, {"type": "text", "text": "world"}]}
    assert summarize_result(result) == "hello world"


def test_summarize_other_values_as_json():
    assert summarize_result({"tables": ["patients"]}) == '{"tables": ["patients"]}...'


def test_detailed_result_sections():
    result = {
        "data": {"rows": [{"id": 1}], "columns": ["id"]},
        "content": [{"type": "text", "text": "ok"}],
        "metadata": {"source": "demo"},
        "totalRows": 1,
    }
    assert extract_detailed_result(result).splitlines() == [
        'ROWS: [{"id": 1}]',
        'COLUMNS: ["id"]',
        "CONTENT: ok",
        'METADATA: {"source": "demo"}',
        "TOTAL_ROWS: 1",
    ]


def test_detailed_result_errors_and_fallbacks():
    assert extract_detailed_result({"error": "boom"}) == "ERROR: boom"
    assert extract_detailed_result({"isError": True, "content": []}) == "ERROR: Query execution failed"
    assert extract_detailed_result({"tables": ["a"]}) == '{\n  "tables": [\n    "a"\n  ]\n}'
    assert extract_detailed_result(None) == "No result"
    assert extract_detailed_result("raw text") == "raw text"


def test_summarize_results():
    assert summarize_results([]) == "No data was gathered."
    assert summarize_results(RECORDS).startswith("Step 1: Used list_tables and ")
    assert "; Step 2: Used run_query and 3 rows" in summarize_results(RECORDS)


# ---------------------------------------------------------------------------
# Final response
# ---------------------------------------------------------------------------


def test_satisfied_uses_the_final_answer():
    response = format_response(RECORDS, CompletionReason.SATISFIED, final_answer="There is 1 table.")

    assert response.is_error is False
    assert response.ai_response == "There is 1 table."
    assert response.total_steps == 2
    assert [s.tool for s in response.execution_summary] == ["list_tables", "run_query"]


def test_satisfied_without_answer():
    response = format_response(RECORDS, CompletionReason.SATISFIED)
    assert response.ai_response == "Task completed successfully based on the executed steps."


@pytest.mark.parametrize(
    "reason",
    [reason for reason in CompletionReason if reason is not CompletionReason.SATISFIED],
)
def test_every_other_reason_is_an_error_with_a_step_summary(reason):
    response = format_response(RECORDS, reason, final_answer="disk on fire")

    assert response.is_error is True
    assert response.completion_reason is reason
    assert response.ai_response.endswith("Step 2: Used run_query and 3 rows")


def test_error_detail_and_step_count_are_interpolated():
    assert "disk on fire" in format_response([], CompletionReason.ERROR, final_answer="disk on fire").ai_response
    assert "executed 2 steps" in format_response(RECORDS, CompletionReason.MAX_STEPS_REACHED).ai_response


def test_wire_format_is_camel_case():
    plan = Plan([Step(step_number=1, tool="list_tables")])
    dumped = format_response([], CompletionReason.NO_ESTIMATION, plan).model_dump(by_alias=True, mode="json")

    assert set(dumped) == {
        "isError",
        "aiResponse",
        "executionSummary",
        "totalSteps",
        "completionReason",
        "estimatedSteps",
    }
    assert dumped["completionReason"] == "no_estimation"
    assert dumped["estimatedSteps"][0]["tool"] == "list_tables"
