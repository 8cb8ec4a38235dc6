# harness.py
# Orchestrator: the context object a caller holds for one session.
#
# Control flow:
#   query → conversational filter → (canned reply)
#         → step planner → executor loop → formatted response
#
# One Orchestrator coordinates N tool providers through a ToolRegistry. Each
# call to run() gets its own Executor, so concurrent runs share only the
# read-only registry snapshot. Terminal output lives in display.py.

import asyncio
import logging
import time
from typing import Any, Callable

from tool_orchestrator.config import Settings
from tool_orchestrator.conversation import classify
from tool_orchestrator.events import EventChannel, EventListener
from tool_orchestrator.executor import Executor, Limits
from tool_orchestrator.llm import PlanningService
from tool_orchestrator.models import Plan, RunResponse, RunResult
from tool_orchestrator.oracle import SatisfactionOracle
from tool_orchestrator.planner import StepPlanner
from tool_orchestrator.refiner import Refiner
from tool_orchestrator.registry import RegistrySnapshot, ToolRegistry

logger = logging.getLogger(__name__)

SERVICE_REQUIRED = (
    "A planning service is required for tool orchestration. "
    "Set OPENAI_API_KEY to enable it."
)

InitialResponseHandler = Callable[[str], None]


class Orchestrator:
    """
    Entry point of the engine.

    Example:
        async with Orchestrator(registry, OpenAIPlanningService(settings), settings) as orch:
            result = await orch.run("what tables exist?")
    """

    def __init__(
        self,
        registry: ToolRegistry,
        planning_service: PlanningService,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._service = planning_service
        self._settings = settings or Settings()
        self._clock = clock
        self._snapshot: RegistrySnapshot | None = None
        self._deliveries: set[asyncio.Task] = set()

        self._planner = StepPlanner(planning_service)
        self._oracle = SatisfactionOracle(planning_service)
        self._refiner = Refiner(planning_service, self._settings.max_refined_steps)
        self._limits = Limits(
            max_steps=self._settings.max_steps,
            max_elapsed_ms=self._settings.max_elapsed_ms,
            max_retries=self._settings.max_retries,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> RegistrySnapshot:
        """Connect to every provider and fix the tool catalogue."""
        self._snapshot = await self._registry.refresh()
        logger.info("Orchestrator ready with tools: %s", self._snapshot.tool_names)
        return self._snapshot

    @property
    def initialized(self) -> bool:
        return self._snapshot is not None

    @property
    def tool_names(self) -> list[str]:
        return self._snapshot.tool_names if self._snapshot else []

    def status(self) -> dict[str, Any]:
        providers = self._registry.status()
        return {
            "initialized": self.initialized,
            "planning_service": self._service.is_configured(),
            "providers": providers,
            "connected": sum(1 for p in providers if p["connected"]),
            "tools": len(self._snapshot.descriptors) if self._snapshot else 0,
        }

    async def flush(self) -> None:
        """Wait until every `on_event` listener has seen its run's events."""
        while self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)

    async def shutdown(self) -> None:
        await self.flush()
        await self._registry.close()
        close = getattr(self._service, "close", None)
        if close is not None:
            await close()
        self._snapshot = None
        logger.info("Orchestrator shut down")

    async def __aenter__(self) -> "Orchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        query: str,
        on_event: EventListener | None = None,
        on_initial_response: InitialResponseHandler | None = None,
        events: EventChannel | None = None,
    ) -> RunResult:
        """
        Answer one request.

        Progress goes to `events` when given: the caller consumes it with
        `async for`, and it is closed when the run ends. `on_event` listeners
        are fed from a background task and never delay the run; `flush()`
        or `shutdown()` waits for them.

        Returns a RunResult in every case except an unavailable registry
        (no providers), which raises NoProvidersError.
        """
        channel = events if events is not None else EventChannel(maxsize=self._settings.event_buffer)
        if on_event is not None:
            channel.subscribe(on_event)
        try:
            return await self._answer(query, channel, on_initial_response)
        finally:
            channel.close()
            self._track(channel.delivery)

    async def _answer(
        self,
        query: str,
        channel: EventChannel,
        on_initial_response: InitialResponseHandler | None,
    ) -> RunResult:
        snapshot = self._snapshot or await self.initialize()

        if not self._service.is_configured():
            logger.warning("Planning service not configured; refusing to orchestrate")
            return RunResult(
                is_workflow=False,
                response=RunResponse(success=False, ai_response=SERVICE_REQUIRED),
            )

        classification = classify(query)
        if classification.is_conversational:
            logger.info("Conversational query (%s), skipping tools", classification.category)
            return RunResult(
                is_workflow=False,
                response=RunResponse(
                    success=True,
                    ai_response=classification.reply or "",
                    is_conversational=True,
                ),
            )

        try:
            estimate = await self._planner.plan(query, list(snapshot.descriptors))
            if on_initial_response is not None:
                try:
                    on_initial_response(estimate.initial_response)
                except Exception:
                    logger.exception("Initial response handler failed")

            executor = Executor(
                snapshot,
                self._oracle,
                self._refiner,
                events=channel,
                limits=self._limits,
                clock=self._clock,
            )
            final = await executor.execute(query, Plan(estimate.steps))
        except Exception as exc:
            logger.exception("Orchestration failed for %r", query)
            return RunResult(
                is_workflow=False,
                response=RunResponse(
                    success=False,
                    ai_response=f"I encountered an error while processing your request: {exc}",
                ),
            )

        return RunResult(
            is_workflow=True,
            response=RunResponse(
                success=not final.is_error,
                ai_response=final.ai_response,
                execution_summary=final.execution_summary,
                total_steps=final.total_steps,
                completion_reason=final.completion_reason,
                initial_response=estimate.initial_response,
            ),
        )

    def _track(self, delivery: asyncio.Task | None) -> None:
        if delivery is None or delivery.done():
            return
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._deliveries.discard)
