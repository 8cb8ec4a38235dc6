# executor.py
# The step loop: resolve → invoke → (retry) → check → refine → next step.
#
# Every terminal path ends in DONE with exactly one CompletionReason.
# The executor owns the Plan and the ExecutionRecord list
# for the lifetime of one run; nothing else mutates them.

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from tool_orchestrator.events import EventChannel
from tool_orchestrator.formatter import format_response, summarize_result
from tool_orchestrator.models import (
    CompletionReason,
    EventType,
    ExecutionRecord,
    FinalResponse,
    Plan,
    RetryContext,
    Step,
    StepEvent,
)
from tool_orchestrator.oracle import SatisfactionOracle
from tool_orchestrator.refiner import Refiner
from tool_orchestrator.registry import RegistrySnapshot, ToolProvider
from tool_orchestrator.retry import is_retryable

logger = logging.getLogger(__name__)


class ExecutorState(str, Enum):
    RESOLVING = "resolving"
    INVOKING = "invoking"
    RETRYING = "retrying"
    CHECKING = "checking"
    REFINING = "refining"
    DONE = "done"


TRANSITIONS: dict[ExecutorState, frozenset[ExecutorState]] = {
    ExecutorState.RESOLVING: frozenset({ExecutorState.INVOKING, ExecutorState.DONE}),
    ExecutorState.INVOKING: frozenset(
        {ExecutorState.CHECKING, ExecutorState.RETRYING, ExecutorState.DONE}
    ),
    ExecutorState.RETRYING: frozenset({ExecutorState.RESOLVING, ExecutorState.DONE}),
    ExecutorState.CHECKING: frozenset({ExecutorState.REFINING, ExecutorState.DONE}),
    ExecutorState.REFINING: frozenset({ExecutorState.RESOLVING}),
    ExecutorState.DONE: frozenset(),
}


@dataclass(frozen=True)
class Limits:
    max_steps: int = 10
    max_elapsed_ms: int = 120_000
    max_retries: int = 2

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries


@dataclass
class RunState:
    """Mutable state of one run. Private to the executor."""

    query: str
    plan: Plan
    started_at: float
    current_step: int = 1
    records: list[ExecutionRecord] = field(default_factory=list)
    retry: RetryContext | None = None
    provider: ToolProvider | None = None
    last_result: Any = None
    last_error: str | None = None
    reason: CompletionReason | None = None
    final_answer: Any = None

    @property
    def attempt(self) -> int:
        return self.retry.attempt_number if self.retry else 1

    def finish(self, reason: CompletionReason, final_answer: Any = None) -> ExecutorState:
        self.reason = reason
        self.final_answer = final_answer
        return ExecutorState.DONE


class Executor:
    """
    Runs one plan to a terminal state.

    One Executor instance per request. Collaborators (registry snapshot,
    oracle, refiner) are read-only and may be shared between executors.
    """

    def __init__(
        self,
        snapshot: RegistrySnapshot,
        oracle: SatisfactionOracle,
        refiner: Refiner,
        events: EventChannel | None = None,
        limits: Limits | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._snapshot = snapshot
        self._oracle = oracle
        self._refiner = refiner
        self._events = events or EventChannel()
        self._limits = limits or Limits()
        self._clock = clock
        self._handlers: dict[ExecutorState, Callable[[RunState], Awaitable[ExecutorState]]] = {
            ExecutorState.RESOLVING: self._resolve,
            ExecutorState.INVOKING: self._invoke,
            ExecutorState.RETRYING: self._retry,
            ExecutorState.CHECKING: self._check,
            ExecutorState.REFINING: self._refine,
        }

    @property
    def events(self) -> EventChannel:
        return self._events

    async def execute(self, query: str, plan: Plan) -> FinalResponse:
        run = RunState(query=query, plan=plan, started_at=self._clock())
        state = ExecutorState.RESOLVING

        while state is not ExecutorState.DONE:
            following = await self._handlers[state](run)
            if following not in TRANSITIONS[state]:
                raise RuntimeError(f"Illegal executor transition {state.value} -> {following.value}")
            logger.debug("Step %d: %s -> %s", run.current_step, state.value, following.value)
            state = following

        assert run.reason is not None
        logger.info(
            "Run finished: %s after %d executed step(s)", run.reason.value, len(run.records)
        )
        return format_response(run.records, run.reason, run.plan, run.final_answer)

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    async def _resolve(self, run: RunState) -> ExecutorState:
        if run.current_step > self._limits.max_steps:
            logger.info("Stopping: maximum steps (%d) reached", self._limits.max_steps)
            return run.finish(CompletionReason.MAX_STEPS_REACHED)

        elapsed_ms = (self._clock() - run.started_at) * 1000
        if elapsed_ms > self._limits.max_elapsed_ms:
            logger.info("Stopping: time budget (%d ms) exceeded", self._limits.max_elapsed_ms)
            return run.finish(CompletionReason.TIMEOUT)

        step = run.plan.get(run.current_step)
        if step is None:
            logger.info("No plan entry for step %d", run.current_step)
            return run.finish(CompletionReason.NO_ESTIMATION)

        if step.completed:
            raise RuntimeError(f"Step {step.step_number} was already executed")

        self._emit(EventType.STEP_START, run, step, status="running")

        if not step.tool:
            message = f"Step {step.step_number} names no tool"
            logger.warning("Step %d names no tool", step.step_number)
            self._emit(EventType.STEP_ERROR, run, step, status="error", error=message, result=message)
            return run.finish(CompletionReason.UNCLEAR)

        provider = self._snapshot.resolve(step.tool)
        if provider is None:
            message = f"Tool {step.tool} not found"
            logger.error("Tool %s not found in any provider", step.tool)
            self._emit(
                EventType.STEP_ERROR,
                run,
                step,
                status="error",
                error=message,
                result=f"Error: Tool {step.tool} not found in available providers",
            )
            return run.finish(CompletionReason.TOOL_NOT_FOUND)

        run.provider = provider
        return ExecutorState.INVOKING

    async def _invoke(self, run: RunState) -> ExecutorState:
        step = self._current(run)
        assert run.provider is not None

        try:
            result = await run.provider.invoke(step.tool, dict(step.arguments))
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "Step %d (%s) attempt %d failed: %s", step.step_number, step.tool, run.attempt, message
            )
            self._emit(EventType.STEP_ERROR, run, step, status="error", error=message, result=message)
            run.last_error = message
            if is_retryable(message):
                return ExecutorState.RETRYING
            return run.finish(CompletionReason.ERROR, message)

        record = ExecutionRecord(
            step=step.step_number,
            tool_name=step.tool,
            arguments=dict(step.arguments),
            result=result,
            reasoning=step.reasoning,
        )
        run.records.append(record)
        run.plan.mark_completed(step.step_number, result)
        run.last_result = result
        run.retry = None
        run.provider = None
        logger.info("Step %d executed using %s", step.step_number, step.tool)

        self._emit(
            EventType.STEP_COMPLETE,
            run,
            step,
            status="completed",
            result=summarize_result(result),
            full_result=result,
        )
        return ExecutorState.CHECKING

    async def _retry(self, run: RunState) -> ExecutorState:
        step = self._current(run)
        next_attempt = run.attempt + 1
        if next_attempt > self._limits.max_attempts:
            logger.error(
                "Max retries reached for step %d after %d attempts", step.step_number, run.attempt
            )
            return run.finish(CompletionReason.MAX_RETRIES, run.last_error)

        run.retry = RetryContext(
            error_message=run.last_error or "",
            original_decision={
                "tool_name": step.tool,
                "arguments": dict(step.arguments),
                "reasoning": step.reasoning,
            },
            attempt_number=next_attempt,
        )
        run.provider = None
        logger.info("Retrying step %d (attempt %d)", step.step_number, next_attempt)
        return ExecutorState.RESOLVING

    async def _check(self, run: RunState) -> ExecutorState:
        verdict = await self._oracle.check(run.query, run.records)
        if verdict.satisfied:
            return run.finish(CompletionReason.SATISFIED, verdict.answer)
        return ExecutorState.REFINING

    async def _refine(self, run: RunState) -> ExecutorState:
        tail = await self._refiner.refine(
            run.query,
            run.current_step,
            run.last_result,
            list(self._snapshot.descriptors),
            run.plan,
        )
        run.plan = run.plan.splice(run.current_step, tail)
        self._events.emit(
            StepEvent(
                type=EventType.ESTIMATION_UPDATE,
                step_number=run.current_step + 1,
                payload={"estimated_steps": run.plan.dump()},
            )
        )
        run.current_step += 1
        return ExecutorState.RESOLVING

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _current(self, run: RunState) -> Step:
        step = run.plan.get(run.current_step)
        assert step is not None
        return step

    def _emit(
        self,
        event_type: EventType,
        run: RunState,
        step: Step,
        status: str,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        description = step.description or "Processing..."
        if run.retry is not None:
            description = f"{description} (Retry attempt {run.retry.attempt_number})"
        payload: dict[str, Any] = {
            "title": step.title or f"Step {step.step_number}",
            "description": description,
            "tool": step.tool,
            "arguments": dict(step.arguments),
            "reasoning": step.reasoning,
            "status": status,
            "is_retry": run.retry is not None,
            "retry_attempt": run.attempt,
        }
        payload.update(extra)
        self._events.emit(
            StepEvent(type=event_type, step_number=step.step_number, payload=payload, error=error)
        )
