# models.py
# Data contracts for the agent execution engine.
# No business logic lives here — pure schema and validation.

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

AgentStatus = Literal["idle", "running", "paused", "error", "completed"]


class AgentConfig(BaseModel):
    """Model binding and capability set for one agent."""

    llm_provider: str = Field(..., description="Provider key, e.g. 'openrouter' or 'openai'.")
    llm_model: str = Field(..., description="Model identifier passed to the provider.")
    agent_type: str = Field(default="default", description="Prompt template key.")
    tools: list[str] = Field(default_factory=list, description="Permitted tool names.")
    environment: dict[str, str] = Field(default_factory=dict)

    @field_validator("tools")
    @classmethod
    def _unique_tools(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class Agent(BaseModel):
    id: str
    name: str
    description: str = ""
    config: AgentConfig
    status: AgentStatus = "idle"
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


class FunctionCall(BaseModel):
    name: str
    arguments: str = Field(default="{}", description="Serialized JSON argument payload.")


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class _Message(BaseModel):
    content: str = ""

    def to_api(self) -> dict[str, Any]:
        """Dump in the OpenAI chat-completions wire shape."""
        return self.model_dump(mode="json", exclude_none=True)


class SystemMessage(_Message):
    role: Literal["system"] = "system"


class UserMessage(_Message):
    role: Literal["user"] = "user"


class AssistantMessage(_Message):
    role: Literal["assistant"] = "assistant"
    tool_calls: list[ToolCall] | None = None


class ToolMessage(_Message):
    role: Literal["tool"] = "tool"
    tool_call_id: str = Field(..., description="Id of the originating tool call.")
    name: str | None = None

    def to_api(self) -> dict[str, Any]:
        # The chat-completions tool message has no `name` field.
        data = super().to_api()
        data.pop("name", None)
        return data


Message = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

_TRANSCRIPT = TypeAdapter(list[Message])


def parse_messages(raw: list[dict[str, Any]]) -> list[Message]:
    """Validate a persisted transcript back into typed messages."""
    return _TRANSCRIPT.validate_python(raw)


# ---------------------------------------------------------------------------
# Tool execution
# ---------------------------------------------------------------------------


class ExecutionContext(BaseModel):
    """Per-turn metadata handed to every tool invoked in that turn."""

    model_config = ConfigDict(frozen=True, extra="allow")

    agent_id: str
    conversation_id: str | None = None
    user_id: str | None = None


class ExecutionResult(BaseModel):
    """Outcome of one tool invocation. Produced once, never mutated."""

    model_config = ConfigDict(frozen=True)

    success: bool
    result: Any = None
    error: str | None = None


class ApprovalRequest(BaseModel):
    """Payload returned in place of execution for approval-gated tools."""

    approval_required: Literal[True] = True
    message: str
    instruction: str
    execute_tool_name: str | None = None
    execute_args: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Model boundary
# ---------------------------------------------------------------------------


class ChatCompletionRequest(BaseModel):
    provider: str
    model: str
    messages: list[Message]
    tools: list[dict[str, Any]] = Field(default_factory=list)
    tool_choice: Literal["auto", "none", "required"] = "auto"
    temperature: float | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    content: str = ""
    model: str | None = None
    tool_calls: list[ToolCall] | None = None
    usage: Usage | None = None


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------


class AgentResponse(BaseModel):
    content: str
    conversation_id: str
    tool_calls: list[ToolCall] | None = None
    tool_results: dict[str, Any] | None = None
    messages: list[Message] = Field(
        default_factory=list,
        description="Full transcript of this run; pass back as history on the next turn.",
    )
