import pytest

from agent_engine.models import AssistantMessage, SystemMessage, UserMessage
from agent_engine.prompts import (
    AgentPromptBuilder,
    PromptTemplate,
    PromptTemplateError,
    default_prompt_builder,
)


def test_list_templates():
    assert set(default_prompt_builder.list_templates()) >= {"default", "command"}


def test_unknown_template_raises():
    with pytest.raises(PromptTemplateError, match="Prompt template not found: nope"):
        default_prompt_builder.get_template("nope")


def test_system_prompt_substitutes_identity_and_tools():
    prompt = default_prompt_builder.build_system_prompt(
        "default", "Helper", "Helps out.", tool_names=["echo", "customTool"]
    )

    assert prompt.startswith("You are Helper. Helps out.")
    assert "You have access to the following tools:" in prompt
    assert "- customTool: Use the customTool tool." in prompt
    assert "{agent_name}" not in prompt
    assert "{tool_instructions}" not in prompt


def test_system_prompt_prefers_explicit_descriptions():
    prompt = default_prompt_builder.build_system_prompt(
        "command",
        "Ops",
        "Runs things.",
        tool_names=["search", "echo"],
        tool_descriptions={"echo": "Say it again."},
    )

    assert "- search: Search the web and return the top results." in prompt
    assert "- echo: Say it again." in prompt


def test_system_prompt_without_tools_has_no_tool_section():
    prompt = default_prompt_builder.build_system_prompt("default", "Helper", "Helps out.")
    assert "You have access to the following tools:" not in prompt


def test_custom_template_keeps_literal_braces():
    builder = AgentPromptBuilder(
        {
            "json": PromptTemplate(
                name="JSON",
                description="Answers in JSON.",
                system_prompt='{agent_name} replies like {"ok": true}.',
                user_prompt_template="Q: {user_input}",
            )
        }
    )

    assert builder.build_system_prompt("json", "Bot", "") == 'Bot replies like {"ok": true}.'
    assert builder.build_user_prompt("json", "why?") == "Q: why?"


def test_agent_messages_order():
    history = [
        SystemMessage(content="old"),
        UserMessage(content="first"),
        AssistantMessage(content="reply"),
    ]

    messages = default_prompt_builder.build_agent_messages(
        "default", "Helper", "Helps out.", "second", history=history
    )

    assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[0].content != "old"
    assert messages[-1].content == "second"


def test_agent_messages_skip_duplicate_user_turn():
    history = [UserMessage(content="already asked")]

    messages = default_prompt_builder.build_agent_messages(
        "default", "Helper", "", "already asked", history=history
    )

    assert [m.role for m in messages] == ["system", "user"]
    assert messages[1].content == "already asked"
