import pytest

from tool_orchestrator.config import Settings
from tool_orchestrator.errors import ConfigError

ENV_KEYS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_MODEL",
    "OPENAI_MAX_TOKENS",
    "OPENAI_TEMPERATURE",
    "ORCHESTRATOR_MAX_STEPS",
    "ORCHESTRATOR_MAX_ELAPSED_MS",
    "ORCHESTRATOR_MAX_RETRIES",
    "ORCHESTRATOR_MAX_REFINED_STEPS",
    "ORCHESTRATOR_EVENT_BUFFER",
    "ORCHESTRATOR_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    settings = Settings.from_env(dotenv=False)

    assert settings.api_key == ""
    assert settings.base_url is None
    assert settings.model == "gpt-4o-mini"
    assert (settings.max_steps, settings.max_elapsed_ms, settings.max_retries) == (10, 120_000, 2)
    assert settings.max_refined_steps == 3
    assert settings.event_buffer == 256
    assert settings.log_level == "INFO"


def test_reads_the_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_BASE_URL", "https://openrouter.ai/api/v1")
    monkeypatch.setenv("ORCHESTRATOR_MAX_STEPS", "4")
    monkeypatch.setenv("OPENAI_TEMPERATURE", "0.2")
    monkeypatch.setenv("ORCHESTRATOR_LOG_LEVEL", "debug")

    settings = Settings.from_env(dotenv=False)

    assert settings.api_key == "sk-test"
    assert settings.base_url == "https://openrouter.ai/api/v1"
    assert settings.max_steps == 4
    assert settings.temperature == 0.2
    assert settings.log_level == "DEBUG"


def test_dotenv_file_is_loaded(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text("ORCHESTRATOR_MAX_RETRIES=5\n")
    monkeypatch.chdir(tmp_path)
    # register the key so monkeypatch unsets what load_dotenv writes
    monkeypatch.setenv("ORCHESTRATOR_MAX_RETRIES", "0")
    monkeypatch.delenv("ORCHESTRATOR_MAX_RETRIES")

    assert Settings.from_env().max_retries == 5


@pytest.mark.parametrize(
    "key, value",
    [
        ("ORCHESTRATOR_MAX_STEPS", "ten"),
        ("OPENAI_TEMPERATURE", "warm"),
        ("ORCHESTRATOR_MAX_RETRIES", "-1"),
        ("ORCHESTRATOR_EVENT_BUFFER", "0"),
    ],
)
def test_invalid_values_fail_fast(monkeypatch, key, value):
    monkeypatch.setenv(key, value)

    with pytest.raises(ConfigError):
        Settings.from_env(dotenv=False)
