from pathlib import Path

import pytest
from pydantic import ValidationError

from agent_engine.config import load_settings
from agent_engine.llm import OPENROUTER_BASE_URL


def test_defaults_from_empty_environment():
    settings = load_settings({})

    assert settings.provider == "openrouter"
    assert settings.max_iterations == 5
    assert settings.workspace == Path("./workspace")
    assert settings.summary_target_tokens is None
    assert settings.providers["openrouter"].base_url == OPENROUTER_BASE_URL
    assert settings.providers["openrouter"].api_key is None


def test_environment_overrides():
    settings = load_settings(
        {
            "AGENT_PROVIDER": "openai",
            "AGENT_MODEL": "gpt-4o",
            "AGENT_MAX_ITERATIONS": "8",
            "AGENT_VERBOSE": "true",
            "AGENT_SUMMARY_TARGET_TOKENS": "3000",
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_BASE_URL": "http://localhost:8000/v1",
        }
    )

    assert settings.provider == "openai"
    assert settings.model == "gpt-4o"
    assert settings.max_iterations == 8
    assert settings.verbose is True
    assert settings.summary_target_tokens == 3000
    assert settings.provider_map()["openai"] == {
        "api_key": "sk-test",
        "base_url": "http://localhost:8000/v1",
    }


def test_empty_values_fall_back_to_defaults():
    settings = load_settings({"AGENT_MODEL": "", "OPENAI_BASE_URL": ""})

    assert settings.model == "anthropic/claude-3.5-haiku"
    assert settings.providers["openai"].base_url is None


@pytest.mark.parametrize(
    "env",
    [
        {"AGENT_MAX_ITERATIONS": "0"},
        {"AGENT_MAX_ITERATIONS": "many"},
        {"AGENT_CONTEXT_SAFETY_MARGIN": "1.5"},
    ],
)
def test_malformed_values_raise(env):
    with pytest.raises(ValidationError):
        load_settings(env)
