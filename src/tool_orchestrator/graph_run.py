# graph_run.py
# Renders a finished run as a rich execution tree instead of a live log.

import asyncio
import sys

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.tree import Tree

from tool_orchestrator.config import Settings
from tool_orchestrator.errors import ConfigError
from tool_orchestrator.events import EventChannel
from tool_orchestrator.harness import Orchestrator
from tool_orchestrator.llm import OpenAIPlanningService
from tool_orchestrator.models import EventType, RunResult, StepEvent
from tool_orchestrator.registry import ToolRegistry
from tool_orchestrator.run import DEMO_DB, configure_logging
from tool_orchestrator.tools import build_demo_provider, seed_demo_database

DEFAULT_PROMPT = "Which patients have blood samples? Discover the tables first."


def _short(value: object, limit: int = 80) -> str:
    text = str(value).replace("\n", " ")
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return escape(text)


def build_graph(query: str, events: list[StepEvent], result: RunResult) -> Tree:
    """One node per executed or attempted step, then the outcome."""
    response = result.response
    graph = Tree(f"[bold green]🗂️  {escape(query)}[/bold green]")

    if response.is_conversational:
        graph.add(f"💬 [cyan]Conversational reply:[/cyan] {_short(response.ai_response)}")
        return graph

    execution = graph.add("⚙️  [bold cyan]Execution Loop[/bold cyan]")
    step_nodes: dict[int, Tree] = {}

    for event in events:
        if event.type is EventType.STEP_START:
            if event.payload.get("is_retry"):
                step_nodes.get(event.step_number, execution).add(
                    f"↻ [yellow]Retry attempt {event.payload.get('retry_attempt')}[/yellow]"
                )
            else:
                node = execution.add(
                    f"[bold magenta]Step {event.step_number}: "
                    f"{escape(event.payload.get('tool', ''))}[/bold magenta]"
                )
                step_nodes[event.step_number] = node
                node.add(f"[dim]Intent:[/dim] {_short(event.payload.get('title', ''))}")
                arguments = event.payload.get("arguments") or {}
                if arguments:
                    args_node = node.add("📦 [cyan]Arguments[/cyan]")
                    for key, value in arguments.items():
                        args_node.add(f"{escape(str(key))}: {_short(value)}")
        elif event.type is EventType.STEP_COMPLETE:
            step_nodes.get(event.step_number, execution).add(
                f"✅ [green]Result:[/green] {_short(event.payload.get('result', ''))}"
            )
        elif event.type is EventType.STEP_ERROR:
            step_nodes.get(event.step_number, execution).add(
                f"💥 [bold red]Error:[/bold red] {_short(event.error or '')}"
            )
        elif event.type is EventType.ESTIMATION_UPDATE:
            remaining = [
                step for step in event.payload.get("estimated_steps", []) if not step.get("completed")
            ]
            execution.add(f"🔁 [yellow]Plan refined:[/yellow] {len(remaining)} step(s) ahead")

    reason = response.completion_reason.value if response.completion_reason else "none"
    status = "[bold green]✓[/bold green]" if response.success else "[bold red]✗[/bold red]"
    outcome = graph.add(f"{status} [bold]Completion:[/bold] {reason} ({response.total_steps or 0} step(s))")
    outcome.add(_short(response.ai_response, 200))
    return graph


async def run_with_graph(settings: Settings, prompt: str, console: Console) -> None:
    registry = ToolRegistry([build_demo_provider(seed_demo_database(DEMO_DB))])
    channel = EventChannel(maxsize=settings.event_buffer)

    async with Orchestrator(registry, OpenAIPlanningService(settings), settings) as orchestrator:
        console.print(Panel(f"[bold blue]User Prompt:[/bold blue]\n{escape(prompt)}"))
        result = await orchestrator.run(prompt, events=channel)
    events = channel.drain()

    console.print("\n")
    console.print(build_graph(prompt, events, result))
    console.print("\n")


def main() -> None:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        Console().print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        sys.exit(2)
    configure_logging(settings.log_level)
    prompt = " ".join(sys.argv[1:]) or DEFAULT_PROMPT
    asyncio.run(run_with_graph(settings, prompt, Console()))


if __name__ == "__main__":
    main()
