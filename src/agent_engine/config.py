# config.py
# Settings from the environment (and a local .env file).
#
# Every knob has a default so a bare checkout runs with only an API key set.

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from agent_engine.llm import OPENROUTER_BASE_URL

load_dotenv()


class ProviderSettings(BaseModel):
    api_key: str | None = None
    base_url: str | None = None


class Settings(BaseModel):
    provider: str = "openrouter"
    model: str = "anthropic/claude-3.5-haiku"
    max_iterations: int = Field(default=5, ge=1)
    max_retries: int = Field(default=2, ge=0, description="SDK transport retries.")
    workspace: Path = Path("./workspace")
    verbose: bool = False
    context_safety_margin: float = Field(default=0.8, gt=0, le=1)
    summary_target_tokens: int | None = Field(default=None, gt=0)
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)

    def provider_map(self) -> dict[str, dict]:
        """Provider settings in the shape OpenAIModelClient expects."""
        return {name: p.model_dump() for name, p in self.providers.items()}


_ENV_FIELDS = {
    "AGENT_PROVIDER": "provider",
    "AGENT_MODEL": "model",
    "AGENT_MAX_ITERATIONS": "max_iterations",
    "AGENT_MAX_RETRIES": "max_retries",
    "AGENT_WORKSPACE": "workspace",
    "AGENT_VERBOSE": "verbose",
    "AGENT_CONTEXT_SAFETY_MARGIN": "context_safety_margin",
    "AGENT_SUMMARY_TARGET_TOKENS": "summary_target_tokens",
}


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """
    Build Settings from `environ` (defaults to os.environ).

    Raises pydantic.ValidationError on malformed values.
    """
    env = os.environ if environ is None else environ

    values: dict = {field: env[var] for var, field in _ENV_FIELDS.items() if env.get(var)}
    values["providers"] = {
        "openrouter": ProviderSettings(
            api_key=env.get("OPENROUTER_API_KEY"),
            base_url=OPENROUTER_BASE_URL,
        ),
        "openai": ProviderSettings(
            api_key=env.get("OPENAI_API_KEY"),
            base_url=env.get("OPENAI_BASE_URL") or None,
        ),
    }
    return Settings.model_validate(values)
