# models.py
# Data contracts for the tool-orchestration engine.
# Schema and validation only, plus the Plan container that enforces the
# "executed steps are never rewritten" rule.

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tool_orchestrator.errors import PlanIntegrityError


class CompletionReason(str, Enum):
    """Closed set of terminal outcomes of one orchestration run."""

    SATISFIED = "satisfied"
    MAX_STEPS_REACHED = "max_steps_reached"
    TIMEOUT = "timeout"
    TOOL_NOT_FOUND = "tool_not_found"
    ERROR = "error"
    MAX_RETRIES = "max_retries"
    NO_ESTIMATION = "no_estimation"
    UNCLEAR = "unclear"


class EventType(str, Enum):
    STEP_START = "step_start"
    STEP_COMPLETE = "step_complete"
    STEP_ERROR = "step_error"
    ESTIMATION_UPDATE = "estimation_update"


class ToolDescriptor(BaseModel):
    """A capability discovered from a tool provider. Immutable once listed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("inputSchema", "input_schema"),
    )
    provider_id: str = Field(
        default="",
        validation_alias=AliasChoices("providerId", "provider_id"),
    )


class Step(BaseModel):
    """One planned tool invocation."""

    step_number: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("stepNumber", "step_number"),
        description="1-based, unique within a plan.",
    )
    title: str = ""
    description: str = ""
    tool: str = Field(
        default="",
        validation_alias=AliasChoices("tool", "estimatedTool", "tool_name"),
        description="Tool name. Empty only in degenerate no-tool plans.",
    )
    arguments: dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    result: Any = None
    completed: bool = False

    @field_validator("tool", "title", "description", "reasoning", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("arguments", mode="before")
    @classmethod
    def _null_arguments(cls, value: Any) -> Any:
        return {} if value is None else value


class Plan:
    """
    Ordered steps keyed by step number.

    Only `mark_completed` mutates an existing step, and only once. `splice`
    replaces the unexecuted tail and refuses to touch anything at or before
    the current step.
    """

    def __init__(self, steps: list[Step] | None = None) -> None:
        self._steps: dict[int, Step] = {}
        for step in steps or []:
            if step.step_number in self._steps:
                raise PlanIntegrityError(f"Duplicate step number {step.step_number}.")
            self._steps[step.step_number] = step

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __contains__(self, step_number: int) -> bool:
        return step_number in self._steps

    @property
    def steps(self) -> list[Step]:
        return [self._steps[n] for n in sorted(self._steps)]

    def get(self, step_number: int) -> Step | None:
        return self._steps.get(step_number)

    def completed_steps(self, up_to: int | None = None) -> list[Step]:
        return [
            step
            for step in self.steps
            if step.completed and (up_to is None or step.step_number <= up_to)
        ]

    def mark_completed(self, step_number: int, result: Any) -> Step:
        step = self._steps.get(step_number)
        if step is None:
            raise PlanIntegrityError(f"No step {step_number} in plan.")
        if step.completed:
            raise PlanIntegrityError(f"Step {step_number} already completed.")
        updated = step.model_copy(update={"result": result, "completed": True})
        self._steps[step_number] = updated
        return updated

    def splice(self, current_step: int, tail: list[Step]) -> "Plan":
        """Return a new plan: steps <= current_step kept, `tail` appended."""
        for step in tail:
            if step.step_number <= current_step:
                raise PlanIntegrityError(
                    f"Refined step {step.step_number} would overwrite executed "
                    f"prefix ending at step {current_step}."
                )
        prefix = [step for step in self.steps if step.step_number <= current_step]
        return Plan(prefix + list(tail))

    def dump(self) -> list[dict[str, Any]]:
        return [step.model_dump() for step in self.steps]


class ExecutionRecord(BaseModel):
    """Append-only log entry for a successfully executed step."""

    model_config = ConfigDict(frozen=True)

    step: int
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    reasoning: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RetryContext(BaseModel):
    """Carried across re-invocations of the same failing step."""

    model_config = ConfigDict(frozen=True)

    is_retry: bool = True
    error_message: str
    original_decision: dict[str, Any] = Field(default_factory=dict)
    attempt_number: int = Field(..., ge=2)


class Completion(BaseModel):
    """Raw text returned by the planning service."""

    text: str = ""
    finish_reason: str | None = None


class StepEvent(BaseModel):
    """Lifecycle notification emitted by the executor."""

    type: EventType
    step_number: int
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


# ---------------------------------------------------------------------------
# Responses (camelCase on the wire)
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepSummary(_WireModel):
    step: int
    tool: str
    summary: str


class FinalResponse(_WireModel):
    is_error: bool
    ai_response: str
    execution_summary: list[StepSummary] = Field(default_factory=list)
    total_steps: int = 0
    completion_reason: CompletionReason
    estimated_steps: list[dict[str, Any]] = Field(default_factory=list)


class RunResponse(_WireModel):
    success: bool
    ai_response: str
    execution_summary: list[StepSummary] | None = None
    total_steps: int | None = None
    completion_reason: CompletionReason | None = None
    is_conversational: bool = False
    initial_response: str | None = None


class RunResult(_WireModel):
    is_workflow: bool
    response: RunResponse
