import json
from unittest.mock import MagicMock

import pytest

from agent_engine import display
from agent_engine.models import (
    Agent,
    AgentConfig,
    ChatCompletion,
    ExecutionContext,
    ExecutionResult,
    FunctionCall,
    ToolCall,
)
from agent_engine.tool_builder import define_tool
from agent_engine.tool_registry import ToolRegistry


@pytest.fixture(autouse=True)
def quiet_display():
    display.configure(quiet=True)
    yield
    display.configure()


def tool_call(call_id: str, name: str, args: dict | str) -> ToolCall:
    raw = args if isinstance(args, str) else json.dumps(args)
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=raw))


def completion(content: str = "", calls: list[ToolCall] | None = None) -> ChatCompletion:
    return ChatCompletion(content=content, model="test-model", tool_calls=calls)


def scripted_model(*responses: ChatCompletion) -> MagicMock:
    model = MagicMock()
    model.complete.side_effect = list(responses)
    return model


def make_echo_tool(name: str = "echoTool"):
    return define_tool(
        name=name,
        description="Echo a message.",
        parameters={
            "type": "object",
            "properties": {"msg": {"type": "string"}},
            "required": ["msg"],
            "additionalProperties": False,
        },
        handler=lambda args, ctx: ExecutionResult(success=True, result={"echo": args["msg"]}),
    )


@pytest.fixture
def context() -> ExecutionContext:
    return ExecutionContext(agent_id="test-agent", conversation_id="test-conversation")


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(make_echo_tool())
    return registry


@pytest.fixture
def agent() -> Agent:
    return Agent(
        id="agent-1",
        name="Tester",
        description="Test agent.",
        config=AgentConfig(llm_provider="openai", llm_model="gpt-4o", tools=["echoTool"]),
    )
