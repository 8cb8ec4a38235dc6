# refiner.py
# Rewrites the unexecuted tail of the plan, grounded in what earlier steps
# actually returned, and rejects proposals that still lean on placeholders.

import json
import logging
import re
from typing import Any, Iterator

from tool_orchestrator.discovery import DiscoverySet, extract, render_history
from tool_orchestrator.formatter import summarize_result
from tool_orchestrator.llm import PlanningService, build_messages
from tool_orchestrator.models import Plan, Step, ToolDescriptor
from tool_orchestrator.parsing import parse_json_steps
from tool_orchestrator.planner import coerce_steps
from tool_orchestrator.prompts import REFINER_PROMPT, REFINER_USER_PROMPT, render_tool_names

logger = logging.getLogger(__name__)

REFINER_MAX_TOKENS = 800
REFINER_TEMPERATURE = 0.1
MAX_REFINED_STEPS = 3

PLACEHOLDER_TOKENS: tuple[str, ...] = (
    "identified_",
    "discovered_",
    "example_",
    "placeholder",
    "patients_table",
    "samples_table",
    "variants_table",
)

_FROM_REFERENCE = re.compile(r"\bfrom\s+[`\"']?([a-zA-Z_][a-zA-Z0-9_.]*)", re.IGNORECASE)


def _argument_text(arguments: dict[str, Any]) -> str:
    return json.dumps(arguments, default=str).lower()


def _argument_strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _argument_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _argument_strings(item)


def has_placeholder(arguments: dict[str, Any]) -> bool:
    text = _argument_text(arguments)
    return any(token in text for token in PLACEHOLDER_TOKENS)


def undiscovered_references(arguments: dict[str, Any], discoveries: DiscoverySet) -> list[str]:
    """`from <x>` targets in the arguments that were never discovered."""
    if not discoveries.resources:
        return []
    missing: list[str] = []
    for text in _argument_strings(arguments):
        for match in _FROM_REFERENCE.finditer(text):
            target = match.group(1).lower()
            tail = target.rsplit(".", 1)[-1]
            if not (discoveries.has_resource(target) or discoveries.has_resource(tail)):
                missing.append(target)
    return missing


def validate_steps(
    steps: list[Step], discoveries: DiscoverySet, limit: int = MAX_REFINED_STEPS
) -> list[Step]:
    """
    Drop proposals that are incomplete or not grounded in discovered data,
    then cap the survivors at `limit`.
    """
    accepted: list[Step] = []
    for step in steps:
        if not step.title or not step.tool:
            logger.warning("Rejecting incomplete refined step: %s", step.model_dump())
            continue
        if has_placeholder(step.arguments):
            logger.warning("Rejecting refined step with placeholder names: %s", step.arguments)
            continue
        missing = undiscovered_references(step.arguments, discoveries)
        if missing:
            logger.warning("Rejecting refined step referencing undiscovered %s", missing)
            continue
        accepted.append(step)
    return accepted[:limit]


def renumber(steps: list[Step], first_number: int) -> list[Step]:
    return [
        step.model_copy(update={"step_number": first_number + offset})
        for offset, step in enumerate(steps)
    ]


class Refiner:
    def __init__(self, service: PlanningService, max_new_steps: int = MAX_REFINED_STEPS) -> None:
        self._service = service
        self._max_new_steps = max_new_steps

    async def refine(
        self,
        query: str,
        current_step: int,
        last_result: Any,
        tools: list[ToolDescriptor],
        prior_plan: Plan,
    ) -> list[Step]:
        """
        Propose steps `current_step + 1` onward.

        Returns only the new tail. An empty list (the fallback on any
        service or parse failure) leaves the executed prefix as the whole plan.
        """
        history = render_history(prior_plan.completed_steps(up_to=current_step))
        discoveries = extract(history)
        logger.info("Discoveries after step %d:\n%s", current_step, discoveries.render())

        system_prompt = REFINER_PROMPT.format(
            query=query,
            current_step=current_step,
            next_step=current_step + 1,
            history=history,
            last_result=summarize_result(last_result),
            discoveries=discoveries.render(),
            tools=render_tool_names(tools),
        )

        try:
            completion = await self._service.complete(
                build_messages(system_prompt, REFINER_USER_PROMPT),
                max_tokens=REFINER_MAX_TOKENS,
                temperature=REFINER_TEMPERATURE,
            )
            raw_steps = parse_json_steps(completion.text)
        except Exception as exc:
            logger.warning("Refinement after step %d failed: %s", current_step, exc)
            return []

        proposed = coerce_steps(raw_steps, first_number=current_step + 1)
        validated = validate_steps(proposed, discoveries, self._max_new_steps)
        if not validated:
            logger.info("No valid steps proposed after step %d", current_step)
            return []
        return renumber(validated, current_step + 1)
