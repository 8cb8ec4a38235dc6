# run.py
# Entry point. Config and wiring only; no logic lives here.
#
# Usage:
#   tool-orchestrator                       # run the demo prompts
#   tool-orchestrator "what tables exist?"  # run one prompt
#
# Point OPENAI_BASE_URL at any OpenAI-compatible endpoint (e.g. OpenRouter).

import asyncio
import logging
import sys

from rich.logging import RichHandler

from tool_orchestrator import display
from tool_orchestrator.config import Settings
from tool_orchestrator.errors import ConfigError, NoProvidersError
from tool_orchestrator.events import EventChannel
from tool_orchestrator.harness import Orchestrator
from tool_orchestrator.llm import OpenAIPlanningService
from tool_orchestrator.registry import ToolRegistry
from tool_orchestrator.tools import build_demo_provider, seed_demo_database

DEMO_DB = "./workspace/demo.db"

# Demo prompts: small talk, single-step discovery, then a multi-step query
# whose later steps depend on what discovery returns.
PROMPTS = [
    "hello",
    "What tables exist?",
    "How many blood samples were collected for each patient? Use the real table names.",
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=display.console, rich_tracebacks=True, show_path=False)],
    )
    # The OpenAI client is chatty at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def render_events(channel: EventChannel) -> None:
    async for event in channel:
        display.render_event(event)


async def run_prompts(settings: Settings, prompts: list[str]) -> None:
    registry = ToolRegistry([build_demo_provider(seed_demo_database(DEMO_DB))])
    service = OpenAIPlanningService(settings)

    async with Orchestrator(registry, service, settings) as orchestrator:
        display.banner(settings.model, orchestrator.tool_names)
        display.provider_status(orchestrator.status())

        for prompt in prompts:
            display.prompt_received(prompt)
            channel = EventChannel(maxsize=settings.event_buffer)
            renderer = asyncio.create_task(render_events(channel))
            result = await orchestrator.run(
                prompt,
                on_initial_response=display.initial_response,
                events=channel,
            )
            await renderer
            display.final_result(result)


def main() -> None:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        display.halt(f"Configuration error: {exc}")
        sys.exit(2)

    configure_logging(settings.log_level)
    prompts = [" ".join(sys.argv[1:])] if len(sys.argv) > 1 else PROMPTS

    try:
        asyncio.run(run_prompts(settings, prompts))
    except NoProvidersError as exc:
        display.halt(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
