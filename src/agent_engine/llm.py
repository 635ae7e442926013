# llm.py
# Model-call boundary.
#
# Messages + tool declarations in, text + optional tool calls + usage out.
# Provider failures are classified into a small error taxonomy so callers can
# show the right guidance. Nothing here retries beyond the SDK's own
# transport retries.

import re
from typing import Any, Protocol

import openai
from openai import OpenAI

from agent_engine.models import (
    ChatCompletion,
    ChatCompletionRequest,
    FunctionCall,
    ToolCall,
    Usage,
)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class LLMError(Exception):
    """Base for every failure raised across the model boundary."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(message)


class LLMAuthenticationError(LLMError):
    """Missing, invalid, or unauthorized credentials."""


class LLMRateLimitError(LLMError):
    """Provider throttled the request."""


class LLMRequestError(LLMError):
    """Any other rejected or failed request, server errors included."""


class LLMConfigurationError(LLMError):
    """Provider is not configured locally."""


# "Error code: 429 - {...}" (openai SDK), "Error 401 ...", "503 Service Unavailable".
_STATUS_PREFIX = re.compile(r"\s*(?:error(?:\s+code)?:?\s*)?([1-5]\d{2})\b", re.IGNORECASE)


def _status_of(exc: Exception) -> int | None:
    for attr in ("status_code", "status"):
        status = getattr(exc, attr, None)
        if isinstance(status, int):
            return status
    match = _STATUS_PREFIX.match(str(exc))
    return int(match.group(1)) if match else None


def classify_error(provider: str, exc: Exception) -> LLMError:
    """Map a provider exception onto the error taxonomy."""
    message = str(exc)
    status = _status_of(exc)

    if status in (401, 403):
        return LLMAuthenticationError(provider, message)
    if status == 429:
        return LLMRateLimitError(provider, message)
    if status is not None and 400 <= status < 500:
        return LLMRequestError(provider, message)
    if status is not None and status >= 500:
        return LLMRequestError(provider, f"Server error ({status}): {message}")

    lowered = message.lower()
    if "authentication" in lowered or "api key" in lowered:
        return LLMAuthenticationError(provider, message)
    return LLMRequestError(provider, message or "Unknown LLM request error")


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class ModelClient(Protocol):
    def complete(self, request: ChatCompletionRequest) -> ChatCompletion: ...


class OpenAIModelClient:
    """
    Chat-completions client for any OpenAI-compatible provider.

    `providers` maps a provider key to {"api_key": ..., "base_url": ...}.
    One SDK client is built lazily per provider.

    Example:
        client = OpenAIModelClient(
            {"openrouter": {"api_key": key, "base_url": OPENROUTER_BASE_URL}}
        )
    """

    def __init__(self, providers: dict[str, dict[str, Any]], max_retries: int = 2) -> None:
        self._providers = providers
        self._max_retries = max_retries
        self._clients: dict[str, OpenAI] = {}

    def _client(self, provider: str) -> OpenAI:
        if provider in self._clients:
            return self._clients[provider]

        settings = self._providers.get(provider)
        if settings is None:
            raise LLMConfigurationError(provider, f"Provider not configured: {provider}")
        if not settings.get("api_key"):
            raise LLMAuthenticationError(provider, f"API key not configured for provider: {provider}")

        client = OpenAI(
            api_key=settings["api_key"],
            base_url=settings.get("base_url"),
            max_retries=self._max_retries,
        )
        self._clients[provider] = client
        return client

    def complete(self, request: ChatCompletionRequest) -> ChatCompletion:
        client = self._client(request.provider)

        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": [message.to_api() for message in request.messages],
        }
        if request.tools:
            kwargs["tools"] = request.tools
            kwargs["tool_choice"] = request.tool_choice
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        try:
            response = client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise classify_error(request.provider, exc) from exc

        return _to_completion(response, request.model)


def _to_completion(response: Any, requested_model: str) -> ChatCompletion:
    message = response.choices[0].message

    tool_calls = [
        ToolCall(
            id=call.id,
            function=FunctionCall(
                name=call.function.name,
                arguments=call.function.arguments or "{}",
            ),
        )
        for call in (message.tool_calls or [])
    ]

    usage = None
    if response.usage is not None:
        usage = Usage(
            prompt_tokens=response.usage.prompt_tokens or 0,
            completion_tokens=response.usage.completion_tokens or 0,
            total_tokens=response.usage.total_tokens or 0,
        )

    return ChatCompletion(
        content=(message.content or "").strip(),
        model=getattr(response, "model", None) or requested_model,
        tool_calls=tool_calls or None,
        usage=usage,
    )
