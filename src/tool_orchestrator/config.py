# config.py
# Environment-driven settings. .env files are honoured via python-dotenv.

import os

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError

from tool_orchestrator.errors import ConfigError


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


class Settings(BaseModel):
    """Runtime configuration for one Orchestrator."""

    api_key: str = ""
    base_url: str | None = None
    model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=1000, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    max_steps: int = Field(default=10, ge=0)
    max_elapsed_ms: int = Field(default=120_000, ge=0)
    max_retries: int = Field(default=2, ge=0)
    max_refined_steps: int = Field(default=3, ge=0)
    event_buffer: int = Field(default=256, ge=1)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        try:
            return cls._from_environ()
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    @classmethod
    def _from_environ(cls) -> "Settings":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY", ""),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", 1000),
            temperature=_env_float("OPENAI_TEMPERATURE", 0.7),
            max_steps=_env_int("ORCHESTRATOR_MAX_STEPS", 10),
            max_elapsed_ms=_env_int("ORCHESTRATOR_MAX_ELAPSED_MS", 120_000),
            max_retries=_env_int("ORCHESTRATOR_MAX_RETRIES", 2),
            max_refined_steps=_env_int("ORCHESTRATOR_MAX_REFINED_STEPS", 3),
            event_buffer=_env_int("ORCHESTRATOR_EVENT_BUFFER", 256),
            log_level=os.getenv("ORCHESTRATOR_LOG_LEVEL", "INFO").upper(),
        )
