import asyncio

import pytest

from tool_orchestrator.errors import PlanningServiceError
from tool_orchestrator.models import ToolDescriptor
from tool_orchestrator.planner import APOLOGY, DEFAULT_ACKNOWLEDGMENT, StepPlanner, coerce_steps

TOOLS = [
    ToolDescriptor(
        name="run_query",
        description="Run a read-only SQL query",
        input_schema={
            "type": "object",
            "properties": {"sql": {"type": "string", "description": "SELECT statement"}},
            "required": ["sql"],
        },
    )
]


def plan(service, query="count patients"):
    return asyncio.run(StepPlanner(service).plan(query, TOOLS))


def test_plan_with_acknowledgment(make_service):
    reply = """```json
{
  "initialResponse": "I'll count the patients.",
  "steps": [
    {"stepNumber": 1, "title": "Count", "tool": "run_query",
     "arguments": {"sql": "SELECT COUNT(*) FROM patients"}, "reasoning": "direct"},
  ]
}
```"""
    service = make_service(planner=reply)

    estimate = plan(service)

    assert estimate.initial_response == "I'll count the patients."
    assert len(estimate.steps) == 1
    assert estimate.steps[0].tool == "run_query"
    assert estimate.steps[0].arguments == {"sql": "SELECT COUNT(*) FROM patients"}

    call = service.calls_for("planner")[0]
    system_prompt, user_prompt = call["messages"]
    assert system_prompt["role"] == "system" and user_prompt["role"] == "user"
    assert "sql: string (required) - SELECT statement" in system_prompt["content"]
    assert '"count patients"' in user_prompt["content"]


def test_missing_acknowledgment_gets_a_default(make_service):
    estimate = plan(make_service(planner={"steps": []}))

    assert estimate.initial_response == DEFAULT_ACKNOWLEDGMENT
    assert estimate.steps == []


@pytest.mark.parametrize(
    "script",
    [PlanningServiceError("rate limited"), "I am not JSON", '{"steps": [}'],
)
def test_failures_yield_an_apology_and_no_steps(make_service, script):
    estimate = plan(make_service(planner=script))

    assert estimate.initial_response == APOLOGY
    assert estimate.steps == []


def test_non_list_steps_are_ignored(make_service):
    estimate = plan(make_service(planner={"initialResponse": "ok", "steps": "first list tables"}))

    assert estimate.initial_response == "ok"
    assert estimate.steps == []


def test_coerce_steps_renumbers_and_drops_junk():
    raw = [
        {"stepNumber": 4, "title": "A", "estimatedTool": "list_tables", "arguments": None},
        "not a step",
        {"step_number": 9, "title": "B", "tool": "run_query", "arguments": "SELECT 1"},
        {"title": "C", "tool": "run_query", "arguments": {"sql": "SELECT 2"}},
    ]

    steps = coerce_steps(raw, first_number=2)

    assert [(s.step_number, s.title) for s in steps] == [(2, "A"), (3, "C")]
    assert steps[0].tool == "list_tables"
    assert steps[0].arguments == {}
    assert all(not s.completed for s in steps)


def test_model_cannot_mark_steps_executed(make_service):
    reply = {
        "initialResponse": "ok",
        "steps": [
            {"title": "List", "tool": "run_query", "completed": True, "result": {"rows": []}},
        ],
    }

    estimate = plan(make_service(planner=reply))

    assert estimate.steps[0].completed is False
    assert estimate.steps[0].result is None
