# planner.py
# Drafts the initial plan and the user-facing acknowledgment in one call.

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from tool_orchestrator.llm import PlanningService, build_messages
from tool_orchestrator.models import Step, ToolDescriptor
from tool_orchestrator.parsing import parse_json_object
from tool_orchestrator.prompts import PLANNER_PROMPT, PLANNER_USER_PROMPT, render_tool_catalogue

logger = logging.getLogger(__name__)

PLANNER_MAX_TOKENS = 1200
PLANNER_TEMPERATURE = 0.3

DEFAULT_ACKNOWLEDGMENT = "I'll help you with that request."
APOLOGY = "I couldn't fully understand your request. Please provide more details."

# Step fields only the executor may set.
EXECUTOR_OWNED_KEYS = frozenset({"completed", "result"})


class PlanEstimate(BaseModel):
    initial_response: str
    steps: list[Step] = Field(default_factory=list)


def coerce_steps(raw_steps: list[Any], first_number: int = 1) -> list[Step]:
    """
    Validate raw step dicts and renumber them contiguously from `first_number`.

    Entries that are not objects, or fail validation even after renumbering,
    are dropped with a warning. Proposed steps always start unexecuted: any
    `completed` or `result` the model supplies is discarded.
    """
    steps: list[Step] = []
    for raw in raw_steps:
        if not isinstance(raw, dict):
            logger.warning("Dropping non-object step: %r", raw)
            continue
        candidate = {
            key: value for key, value in raw.items() if key not in EXECUTOR_OWNED_KEYS
        }
        candidate.pop("step_number", None)
        candidate["stepNumber"] = first_number + len(steps)
        try:
            steps.append(Step.model_validate(candidate))
        except ValidationError as exc:
            logger.warning("Dropping invalid step %r: %s", raw, exc)
    return steps


class StepPlanner:
    def __init__(self, service: PlanningService) -> None:
        self._service = service

    async def plan(self, query: str, tools: list[ToolDescriptor]) -> PlanEstimate:
        """
        Ask the planning service for an initial plan.

        Never raises: service or parse failures yield an empty plan and an
        apology, which the executor turns into `no_estimation`.
        """
        system_prompt = PLANNER_PROMPT.format(query=query, tools=render_tool_catalogue(tools))
        messages = build_messages(system_prompt, PLANNER_USER_PROMPT.format(query=query))

        try:
            completion = await self._service.complete(
                messages, max_tokens=PLANNER_MAX_TOKENS, temperature=PLANNER_TEMPERATURE
            )
            parsed = parse_json_object(completion.text)
        except Exception as exc:
            logger.warning("Initial step estimation failed: %s", exc)
            return PlanEstimate(initial_response=APOLOGY, steps=[])

        raw_steps = parsed.get("steps") or []
        if not isinstance(raw_steps, list):
            logger.warning("Planner returned non-list steps: %r", raw_steps)
            raw_steps = []

        steps = coerce_steps(raw_steps)
        acknowledgment = parsed.get("initialResponse") or parsed.get("initial_response")
        logger.info("Initial plan: %s", [step.tool for step in steps])
        return PlanEstimate(
            initial_response=str(acknowledgment) if acknowledgment else DEFAULT_ACKNOWLEDGMENT,
            steps=steps,
        )
