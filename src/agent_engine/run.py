# run.py
# Entry point. Config and wiring only — no logic lives here.
#
# Set OPENROUTER_API_KEY (or OPENAI_API_KEY with AGENT_PROVIDER=openai) in a
# .env file, then run `agent-engine`. Type `exit` to quit.

from rich.prompt import Prompt

from agent_engine import display
from agent_engine.config import Settings, load_settings
from agent_engine.context_window import (
    compact_conversation,
    estimate_conversation_tokens,
    get_model_context_limit,
    should_summarize,
)
from agent_engine.llm import LLMError, OpenAIModelClient
from agent_engine.models import Agent, AgentConfig, Message
from agent_engine.runner import AgentConfigurationError, AgentRunner
from agent_engine.tool_registry import ToolNotFoundError, ToolRegistry
from agent_engine.tools import register_builtin_tools

EXIT_COMMANDS = {"exit", "quit", ":q"}


def _fit_history(history: list[Message], model: str, margin: float, target: int | None) -> list[Message]:
    if not should_summarize(history, model, margin):
        return history
    target = target or int(get_model_context_limit(model) * 0.6)
    reduced = compact_conversation(history, model, target)
    display.context_summarized(
        len(history),
        len(reduced),
        estimate_conversation_tokens(history),
        estimate_conversation_tokens(reduced),
    )
    return reduced


def build_agent(settings: Settings, registry: ToolRegistry) -> Agent:
    """Default agent: every visible tool plus the committers its approval tools hand off to."""
    return Agent(
        id="assistant",
        name="Assistant",
        description="A careful assistant that can search, write files, call webhooks, and run commands.",
        config=AgentConfig(
            llm_provider=settings.provider,
            llm_model=settings.model,
            agent_type="command",
            tools=registry.with_follow_ups(registry.list_tools(include_hidden=False)),
        ),
    )


def main() -> None:
    settings = load_settings()
    display.configure(verbose=settings.verbose)
    settings.workspace.mkdir(parents=True, exist_ok=True)

    registry = ToolRegistry()
    register_builtin_tools(registry, settings.workspace)

    agent = build_agent(settings, registry)
    runner = AgentRunner(
        registry,
        OpenAIModelClient(settings.provider_map(), max_retries=settings.max_retries),
        max_iterations=settings.max_iterations,
    )
    display.banner(settings.provider, settings.model, registry.list_tools(include_hidden=False))

    history: list[Message] = []
    conversation_id: str | None = None

    while True:
        user_input = Prompt.ask("[bold cyan]you[/bold cyan]").strip()
        if not user_input:
            continue
        if user_input.lower() in EXIT_COMMANDS:
            break

        history = _fit_history(
            history, settings.model, settings.context_safety_margin, settings.summary_target_tokens
        )
        try:
            response = runner.run(
                agent,
                user_input,
                conversation_id=conversation_id,
                conversation_history=history,
            )
        except LLMError as exc:
            display.model_error(exc)
            continue
        except (AgentConfigurationError, ToolNotFoundError) as exc:
            display.halt(f"Configuration error: {exc}")
            raise

        conversation_id = response.conversation_id
        history = response.messages
        if response.tool_results:
            display.tool_summary(response.tool_results)
        display.final_result(response.content or "(no final answer — iteration cap reached)")


if __name__ == "__main__":
    main()
