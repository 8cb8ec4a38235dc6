import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from tool_orchestrator.config import Settings
from tool_orchestrator.errors import PlanningServiceError
from tool_orchestrator.llm import OpenAIPlanningService, PlanningService, build_messages


def completion(content, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)]
    )


def service_with(create):
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    return OpenAIPlanningService(Settings(model="test-model"), client=client), client


def test_build_messages():
    assert build_messages("sys", "usr") == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "usr"},
    ]


def test_without_api_key_the_service_is_unconfigured():
    service = OpenAIPlanningService(Settings(api_key=""))

    assert service.is_configured() is False
    with pytest.raises(PlanningServiceError):
        asyncio.run(service.complete(build_messages("s", "u"), 10, 0.1))


def test_api_key_builds_a_client():
    service = OpenAIPlanningService(Settings(api_key="sk-test"))

    assert service.is_configured() is True
    assert isinstance(service, PlanningService)


def test_complete_sends_the_call_settings():
    create = AsyncMock(return_value=completion("  {\"satisfied\": true}  "))
    service, _ = service_with(create)
    messages = build_messages("system", "user")

    result = asyncio.run(service.complete(messages, max_tokens=800, temperature=0.1))

    assert result.text == '{"satisfied": true}'
    assert result.finish_reason == "stop"
    create.assert_awaited_once_with(
        model="test-model", messages=messages, max_tokens=800, temperature=0.1
    )


def test_complete_falls_back_to_configured_defaults():
    create = AsyncMock(return_value=completion(None, "length"))
    service, _ = service_with(create)

    result = asyncio.run(service.complete(build_messages("s", "u")))

    assert result.text == ""
    assert result.finish_reason == "length"
    kwargs = create.await_args.kwargs
    assert kwargs["max_tokens"] == 1000
    assert kwargs["temperature"] == 0.7


def test_client_errors_are_wrapped():
    service, _ = service_with(AsyncMock(side_effect=OpenAIError("upstream down")))

    with pytest.raises(PlanningServiceError, match="upstream down"):
        asyncio.run(service.complete(build_messages("s", "u"), 10, 0.1))


def test_empty_choices_are_an_error():
    service, _ = service_with(AsyncMock(return_value=SimpleNamespace(choices=[])))

    with pytest.raises(PlanningServiceError, match="no choices"):
        asyncio.run(service.complete(build_messages("s", "u"), 10, 0.1))


def test_close_closes_the_client():
    service, client = service_with(AsyncMock())

    asyncio.run(service.close())

    client.close.assert_awaited_once()
