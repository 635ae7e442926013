# runner.py
# Agent execution loop.
#
# The runner is the kernel of a run. The model is a passive responder: it
# proposes text and tool calls, the runner owns all control flow, dispatch,
# and transcript state.
#
# Control flow per run:
#   validate agent tools → build system + history + user messages
#   → [model call → append assistant → dispatch tool calls in order
#      → append tool results] × up to max_iterations
#   → final answer + full transcript
#
# Nothing is shared between runs: transcript, context, and counters are local
# to each call. All terminal output is delegated to display.py.

import json
import uuid
from collections.abc import Sequence
from typing import Any

from agent_engine import display
from agent_engine.llm import ModelClient
from agent_engine.models import (
    Agent,
    AgentResponse,
    AssistantMessage,
    ChatCompletionRequest,
    ExecutionContext,
    Message,
    ToolCall,
    ToolMessage,
)
from agent_engine.prompts import AgentPromptBuilder, default_prompt_builder
from agent_engine.tool_registry import ToolNotFoundError, ToolRegistry

DEFAULT_MAX_ITERATIONS = 5


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AgentConfigurationError(Exception):
    """Raised when an agent is permitted tools the registry does not hold. Always fatal."""

    def __init__(self, agent_id: str, missing_tools: list[str]) -> None:
        self.agent_id = agent_id
        self.missing_tools = missing_tools
        super().__init__(
            f"Agent {agent_id} references non-existent tools: {', '.join(missing_tools)}"
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_conversation_id() -> str:
    return f"conv-{uuid.uuid4().hex[:12]}"


def _parse_arguments(tool_name: str, raw: str) -> dict[str, Any]:
    """
    Decode a tool call's argument payload. Malformed or non-object payloads
    become {} so the tool's own validation reports the problem.
    """
    try:
        parsed = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        display.tool_arguments_malformed(tool_name, raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class AgentRunner:
    """
    Drives one bounded conversation per `run` call.

    The registry and model client are injected; register every tool before
    the first run.

    Example:
        runner = AgentRunner(registry, OpenAIModelClient(providers))
        response = runner.run(agent, "List the workspace files.")
        history = response.messages   # pass back on the next turn
    """

    def __init__(
        self,
        registry: ToolRegistry,
        model: ModelClient,
        prompt_builder: AgentPromptBuilder = default_prompt_builder,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self._registry = registry
        self._model = model
        self._prompts = prompt_builder
        self._max_iterations = max_iterations

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _permitted_tools(self, agent: Agent) -> list[str]:
        tool_names = list(agent.config.tools)
        missing = [name for name in tool_names if name not in self._registry]
        if missing:
            display.halt(f"Agent {agent.id} references non-existent tools: {', '.join(missing)}")
            raise AgentConfigurationError(agent.id, missing)
        return tool_names

    # ------------------------------------------------------------------
    # Tool dispatch
    # ------------------------------------------------------------------

    def _execute_tool_calls(
        self,
        tool_calls: list[ToolCall],
        context: ExecutionContext,
        transcript: list[Message],
    ) -> dict[str, Any]:
        """
        Dispatch each call in the order the model returned them and append
        one tool message per call.

        ToolNotFoundError propagates. Every other failure is recorded as an
        `Error: ...` tool message and the run continues.
        """
        results: dict[str, Any] = {}

        for call in tool_calls:
            name = call.function.name
            args = _parse_arguments(name, call.function.arguments)
            display.tool_arguments(name, args)

            try:
                result = self._registry.dispatch(name, args, context)
                if result.success:
                    content = json.dumps(result.result)
                else:
                    error = result.error or "Tool execution failed"
                    content = f"Error: {error}"
                    if result.result is not None:
                        content += "\n" + json.dumps(result.result)
            except ToolNotFoundError:
                display.tool_not_found(name)
                raise
            except Exception as exc:
                transcript.append(
                    ToolMessage(name=name, content=f"Error: {exc}", tool_call_id=call.id)
                )
                results[name] = {"error": str(exc)}
                continue

            transcript.append(ToolMessage(name=name, content=content, tool_call_id=call.id))
            if result.success:
                results[name] = result.result
            else:
                results[name] = {"error": result.error or "Tool execution failed"}
                if result.result is not None:
                    results[name]["result"] = result.result

        return results

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(
        self,
        agent: Agent,
        user_input: str,
        conversation_id: str | None = None,
        user_id: str | None = None,
        max_iterations: int | None = None,
        conversation_history: Sequence[Message] | None = None,
    ) -> AgentResponse:
        """
        Run the turn loop for one user input.

        Raises AgentConfigurationError before any model call when the agent
        names unregistered tools, ToolNotFoundError when the model calls one,
        and LLMError subclasses from the model boundary unchanged.
        """
        conversation_id = conversation_id or _new_conversation_id()
        max_iterations = self._max_iterations if max_iterations is None else max_iterations
        provider, model = agent.config.llm_provider, agent.config.llm_model

        display.prompt_received(user_input)

        # ── Step 1: Validate capabilities ─────────────────────────────
        tool_names = self._permitted_tools(agent)

        # ── Step 2: Seed the transcript ───────────────────────────────
        transcript: list[Message] = self._prompts.build_agent_messages(
            agent.config.agent_type,
            agent_name=agent.name,
            agent_description=agent.description,
            user_input=user_input,
            history=list(conversation_history or []),
            tool_names=tool_names,
        )
        declarations = self._registry.declarations(tool_names)

        # ── Step 3: Turn loop ─────────────────────────────────────────
        content = ""
        last_tool_calls: list[ToolCall] | None = None
        last_tool_results: dict[str, Any] | None = None

        for iteration in range(max_iterations):
            display.agent_thinking(agent.name, iteration)
            display.model_request(provider, model, transcript, declarations)

            completion = self._model.complete(
                ChatCompletionRequest(
                    provider=provider,
                    model=model,
                    messages=list(transcript),
                    tools=declarations,
                    tool_choice="auto",
                )
            )
            display.model_response(completion.content, completion.tool_calls)

            tool_calls = completion.tool_calls or []
            transcript.append(
                AssistantMessage(content=completion.content, tool_calls=tool_calls or None)
            )

            if not tool_calls:
                content = completion.content
                display.agent_completed(agent.name, iteration + 1)
                break

            display.tools_requested(agent.name, [call.function.name for call in tool_calls])
            context = ExecutionContext(
                agent_id=agent.id, conversation_id=conversation_id, user_id=user_id
            )
            last_tool_calls = tool_calls
            last_tool_results = self._execute_tool_calls(tool_calls, context, transcript)
        else:
            display.max_iterations_reached(agent.name, max_iterations)

        return AgentResponse(
            content=content,
            conversation_id=conversation_id,
            tool_calls=last_tool_calls,
            tool_results=last_tool_results,
            messages=transcript,
        )
