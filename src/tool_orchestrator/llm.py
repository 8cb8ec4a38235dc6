# llm.py
# Planning-service boundary. The engine only ever needs "send a system and a
# user message, get text back"; everything else about the model is
# configuration.

import logging
from typing import Protocol, runtime_checkable

from openai import AsyncOpenAI, OpenAIError

from tool_orchestrator.config import Settings
from tool_orchestrator.errors import PlanningServiceError
from tool_orchestrator.models import Completion

logger = logging.getLogger(__name__)


@runtime_checkable
class PlanningService(Protocol):
    async def complete(
        self, messages: list[dict[str, str]], max_tokens: int, temperature: float
    ) -> Completion: ...

    def is_configured(self) -> bool: ...


def build_messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
    """Exactly one system-role and one user-role message, as every call sends."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


class OpenAIPlanningService:
    """
    Chat-completions client for any OpenAI-compatible endpoint.

    Set OPENAI_BASE_URL to target a compatible gateway such as OpenRouter.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client
        if self._client is None and settings.api_key:
            self._client = AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)

    @property
    def model(self) -> str:
        return self._settings.model

    def is_configured(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Completion:
        if self._client is None:
            raise PlanningServiceError("Planning service has no API key configured.")

        logger.debug(
            "Chat completion: %d messages, model=%s", len(messages), self._settings.model
        )
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.model,
                messages=messages,
                max_tokens=max_tokens or self._settings.max_tokens,
                temperature=self._settings.temperature if temperature is None else temperature,
            )
        except OpenAIError as exc:
            raise PlanningServiceError(f"Chat completion failed: {exc}") from exc

        if not response.choices:
            raise PlanningServiceError("Chat completion returned no choices.")

        choice = response.choices[0]
        return Completion(
            text=(choice.message.content or "").strip(),
            finish_reason=choice.finish_reason,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
