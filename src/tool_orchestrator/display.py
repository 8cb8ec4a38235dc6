# display.py
# All terminal output for the orchestrator CLI.
#
# The engine never formats strings for humans. It emits StepEvents and
# returns RunResults; the functions here turn those into rich output.
#
# Colour language:
#   cyan   : routing and planning
#   yellow : plan refinement
#   green  : success / satisfied
#   red    : failures and error terminations
#   magenta: tool calls (arguments and results)

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from tool_orchestrator.models import EventType, RunResult, StepEvent, StepSummary

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: Any, max_len: int = 120) -> str:
    if not isinstance(value, str):
        value = json.dumps(value, default=str)
    if len(value) > max_len:
        return escape(value[:max_len] + "…")
    return escape(value)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def banner(model: str, tool_names: list[str]) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Tool Orchestrator[/bold cyan]\n"
            "[dim]Plan, execute, check and refine against discovered tools[/dim]\n\n"
            f"[dim]Model :[/dim] [white]{model}[/white]\n"
            f"[dim]Tools :[/dim] [white]{', '.join(tool_names) or 'none'}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def provider_status(status: dict[str, Any]) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Provider", style="white")
    table.add_column("Connected", justify="center", width=10)
    table.add_column("Tools", justify="right", width=6)
    for entry in status["providers"]:
        connected = "[bold green]✓[/bold green]" if entry["connected"] else "[bold red]✗[/bold red]"
        table.add_row(entry["provider"], connected, str(entry["tools"]))
    console.print(table)


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW REQUEST[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(prompt)}[/white]",
            title=_label("USER PROMPT", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


def initial_response(text: str) -> None:
    console.print()
    console.print(_label("PLANNER", "cyan"), f"[cyan] {escape(text)}[/cyan]")


# ---------------------------------------------------------------------------
# Plan display
# ---------------------------------------------------------------------------


def plan_table(steps: list[dict[str, Any]], title: str = "PLAN") -> None:
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="cyan",
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("#", justify="center", width=4)
    table.add_column("Tool", style="bold white", width=16)
    table.add_column("Arguments", style="dim white", width=32)
    table.add_column("Title", style="white")
    table.add_column("Done", justify="center", width=6)

    for step in steps:
        table.add_row(
            str(step.get("step_number", "?")),
            step.get("tool") or "[dim]-[/dim]",
            _mono(step.get("arguments") or {}, 30),
            escape(step.get("title", "")),
            "[green]✓[/green]" if step.get("completed") else "",
        )

    console.print(
        Panel(table, title=_label(title, "yellow"), border_style="yellow", padding=(0, 1))
    )


# ---------------------------------------------------------------------------
# Lifecycle events
# ---------------------------------------------------------------------------


def step_start(event: StepEvent) -> None:
    payload = event.payload
    console.print()
    console.print(
        f"[bold cyan]  STEP {event.step_number}[/bold cyan]  "
        f"[white]{escape(payload.get('title', ''))}[/white]"
    )
    if payload.get("is_retry"):
        console.print(f"  [yellow]↻ Retry attempt {payload.get('retry_attempt')}[/yellow]")
    console.print(
        f"  [magenta]Call[/magenta]     [bold white]{payload.get('tool', '')}[/bold white]"
        f"  [dim]{_mono(payload.get('arguments') or {})}[/dim]"
    )


def step_complete(event: StepEvent) -> None:
    console.print(
        f"  [magenta]Result[/magenta]   [white]{_mono(event.payload.get('result', ''), 140)}[/white]"
    )


def step_error(event: StepEvent) -> None:
    console.print(f"  [bold red]✗ {escape(event.error or 'Step failed')}[/bold red]")


def render_event(event: StepEvent) -> None:
    """Prints one lifecycle event; the CLI feeds it from the run's EventChannel."""
    if event.type is EventType.STEP_START:
        step_start(event)
    elif event.type is EventType.STEP_COMPLETE:
        step_complete(event)
    elif event.type is EventType.STEP_ERROR:
        step_error(event)
    elif event.type is EventType.ESTIMATION_UPDATE:
        plan_table(event.payload.get("estimated_steps", []), title="PLAN REFINED")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def execution_summary(summary: list[StepSummary]) -> None:
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Step", justify="center", width=6)
    table.add_column("Tool", width=16)
    table.add_column("Summary", style="dim white")

    for entry in summary:
        table.add_row(str(entry.step), escape(entry.tool), _mono(entry.summary, 60))

    console.print(
        Panel(table, title="[dim]EXECUTION SUMMARY[/dim]", border_style="dim", padding=(0, 1))
    )


def final_result(result: RunResult) -> None:
    response = result.response
    if response.is_conversational:
        tag, color = "REPLY", "cyan"
    elif response.success:
        tag, color = "RESULT", "green"
    else:
        tag, color = "HALT", "red"

    subtitle = None
    if response.completion_reason is not None:
        subtitle = f"[dim]{response.completion_reason.value} · {response.total_steps} step(s)[/dim]"

    if response.execution_summary:
        execution_summary(response.execution_summary)

    console.print()
    console.print(
        Panel(
            f"[white]{escape(response.ai_response)}[/white]",
            title=_label(tag, color),
            subtitle=subtitle,
            border_style=color,
            padding=(1, 2),
        )
    )
    console.print()


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
