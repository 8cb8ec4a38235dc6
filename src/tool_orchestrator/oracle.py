# oracle.py
# Decides after each step whether the gathered results already answer the
# request. Any doubt (service error, unparseable verdict) means "not yet".

import logging
from collections.abc import Sequence

from pydantic import BaseModel

from tool_orchestrator.formatter import summarize_result
from tool_orchestrator.llm import PlanningService, build_messages
from tool_orchestrator.models import ExecutionRecord
from tool_orchestrator.parsing import parse_json_object
from tool_orchestrator.prompts import ORACLE_PROMPT, ORACLE_USER_PROMPT

logger = logging.getLogger(__name__)

ORACLE_MAX_TOKENS = 800
ORACLE_TEMPERATURE = 0.1


class Verdict(BaseModel):
    satisfied: bool = False
    answer: str | None = None


def render_gathered(history: Sequence[ExecutionRecord]) -> str:
    return "\n".join(
        f"Step {record.step}: {record.tool_name} → {summarize_result(record.result)}"
        for record in history
    )


class SatisfactionOracle:
    def __init__(self, service: PlanningService) -> None:
        self._service = service

    async def check(self, query: str, history: Sequence[ExecutionRecord]) -> Verdict:
        if not history:
            return Verdict(satisfied=False)

        system_prompt = ORACLE_PROMPT.format(query=query, gathered=render_gathered(history))
        try:
            completion = await self._service.complete(
                build_messages(system_prompt, ORACLE_USER_PROMPT),
                max_tokens=ORACLE_MAX_TOKENS,
                temperature=ORACLE_TEMPERATURE,
            )
            parsed = parse_json_object(completion.text)
        except Exception as exc:
            logger.warning("Satisfaction check failed, continuing: %s", exc)
            return Verdict(satisfied=False)

        satisfied = parsed.get("satisfied") is True
        answer = parsed.get("answer")
        verdict = Verdict(
            satisfied=satisfied,
            answer=str(answer) if satisfied and answer is not None else None,
        )
        logger.info("Satisfaction after %d step(s): %s", len(history), verdict.satisfied)
        return verdict
