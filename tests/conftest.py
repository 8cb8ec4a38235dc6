import json
from typing import Any, Callable

import pytest

from tool_orchestrator.errors import PlanningServiceError
from tool_orchestrator.models import Completion, ToolDescriptor

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

Script = str | dict | list | BaseException | Callable[[list[dict[str, str]]], Any]


def _role(messages: list[dict[str, str]]) -> str:
    user = messages[-1]["content"]
    if user.startswith("Create step estimation"):
        return "planner"
    if user == "Evaluate satisfaction":
        return "oracle"
    return "refiner"


class FakePlanningService:
    """
    Scripted planning service. Each role (planner / oracle / refiner) gets a
    script: a reply string, a dict (sent as JSON), an exception to raise, a
    callable of the messages, or a list of those consumed in order with the
    last one repeating.
    """

    def __init__(self, configured: bool = True, **scripts: Script) -> None:
        self.configured = configured
        self.scripts = scripts
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def is_configured(self) -> bool:
        return self.configured

    def calls_for(self, role: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["role"] == role]

    async def complete(self, messages, max_tokens, temperature) -> Completion:
        role = _role(messages)
        index = len(self.calls_for(role))
        self.calls.append(
            {"role": role, "messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        )

        script = self.scripts.get(role)
        if script is None:
            raise PlanningServiceError(f"No script for {role}")
        if isinstance(script, list):
            script = script[min(index, len(script) - 1)]
        if isinstance(script, BaseException):
            raise script
        if callable(script):
            script = script(messages)
        text = script if isinstance(script, str) else json.dumps(script)
        return Completion(text=text, finish_reason="stop")

    async def close(self) -> None:
        self.closed = True


class FakeProvider:
    """
    Provider whose tools return scripted outcomes. An outcome that is an
    exception is raised; a list of outcomes is consumed call by call.
    """

    def __init__(self, provider_id: str = "fake", **tools: Any) -> None:
        self.provider_id = provider_id
        self.tools = tools
        self.invocations: list[tuple[str, dict]] = []
        self.closed = False

    async def list_tools(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(name=name, description=f"{name} tool", provider_id=self.provider_id)
            for name in self.tools
        ]

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        calls = sum(1 for name, _ in self.invocations if name == tool_name)
        self.invocations.append((tool_name, arguments))
        outcome = self.tools[tool_name]
        if isinstance(outcome, list):
            outcome = outcome[min(calls, len(outcome) - 1)]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_service():
    return FakePlanningService


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def plan_reply():
    """Build a planner JSON reply from (tool, arguments) pairs."""

    def build(*steps: tuple[str, dict], initial: str = "On it.") -> dict:
        return {
            "initialResponse": initial,
            "steps": [
                {
                    "stepNumber": number,
                    "title": f"Use {tool or 'nothing'}",
                    "description": f"Step {number}",
                    "tool": tool,
                    "arguments": arguments,
                    "reasoning": "test",
                }
                for number, (tool, arguments) in enumerate(steps, start=1)
            ],
        }

    return build


@pytest.fixture
def demo_db(tmp_path):
    from tool_orchestrator.tools import seed_demo_database

    return seed_demo_database(str(tmp_path / "demo.db"))
