# prompts.py
# Prompt templates and the builder that seeds every run.
#
# Templates are opaque strings with {placeholder} substitution done by plain
# replacement, so literal braces in template text are safe.

from collections.abc import Sequence

from pydantic import BaseModel, Field

from agent_engine.models import Message, SystemMessage, UserMessage


class PromptTemplateError(LookupError):
    """Raised when a template key is not registered."""


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

DEFAULT_SYSTEM_PROMPT = """\
You are {agent_name}. {agent_description}

{tool_instructions}

Operating rules:
- Prefer the least destructive tool that accomplishes the task.
- Some tools require user approval. When a tool result contains \
"approval_required": true, show the approval message to the user and stop. \
Do not call the follow-up tool until the user explicitly approves in a later message.
- When the user approves, call exactly the tool named in execute_tool_name with \
exactly the execute_args you were given.
- If a tool returns an error, read it, correct your arguments, and retry once \
before reporting the failure.
- When no tool is needed, answer directly.\
"""

COMMAND_SYSTEM_PROMPT = """\
You are {agent_name}, a command execution agent. {agent_description}

Translate user requests into tool operations. Choose tools precisely, format \
parameters exactly as declared, and report results clearly.

{tool_instructions}

High-risk operations (writing files, sending data to external hosts, running \
shell commands) always go through an approval step. Explain the action and its \
risk, wait for the user's explicit approval, then call the follow-up tool named \
in the approval result.\
"""


class PromptTemplate(BaseModel):
    name: str
    description: str
    system_prompt: str
    user_prompt_template: str = "{user_input}"
    tool_descriptions: dict[str, str] = Field(default_factory=dict)


TEMPLATES: dict[str, PromptTemplate] = {
    "default": PromptTemplate(
        name="Default Agent",
        description="A general-purpose agent that can assist with various tasks.",
        system_prompt=DEFAULT_SYSTEM_PROMPT,
    ),
    "command": PromptTemplate(
        name="Command Agent",
        description="An agent that executes filesystem, network, and shell operations.",
        system_prompt=COMMAND_SYSTEM_PROMPT,
        tool_descriptions={
            "echo": "Repeat a message back verbatim.",
            "search": "Search the web and return the top results.",
            "summarize": "Trim long text down to a manageable size.",
            "file_write": "Propose writing a file inside the workspace (requires approval).",
            "http_post": "Propose POSTing JSON to a URL (requires approval).",
            "execute_command": "Propose running a shell command (requires approval).",
            "file_write_approved": "Write the file. Call only after the user approved a file_write request.",
            "http_post_approved": "Send the POST. Call only after the user approved an http_post request.",
            "execute_command_approved": "Run the command. Call only after the user approved an execute_command request.",
        },
    ),
}


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class AgentPromptBuilder:
    def __init__(self, templates: dict[str, PromptTemplate] | None = None) -> None:
        self._templates = dict(TEMPLATES if templates is None else templates)

    def get_template(self, key: str) -> PromptTemplate:
        try:
            return self._templates[key]
        except KeyError:
            raise PromptTemplateError(f"Prompt template not found: {key}") from None

    def list_templates(self) -> list[str]:
        return list(self._templates)

    def build_system_prompt(
        self,
        key: str,
        agent_name: str,
        agent_description: str,
        tool_names: Sequence[str] = (),
        tool_descriptions: dict[str, str] | None = None,
    ) -> str:
        template = self.get_template(key)
        overrides = tool_descriptions or {}

        tool_instructions = ""
        if tool_names:
            lines = ["You have access to the following tools:", ""]
            for name in tool_names:
                description = (
                    overrides.get(name)
                    or template.tool_descriptions.get(name)
                    or f"Use the {name} tool."
                )
                lines.append(f"- {name}: {description}")
            lines.append("")
            lines.append(
                "When you need to use a tool, respond with the appropriate tool name and parameters."
            )
            tool_instructions = "\n".join(lines)

        return (
            template.system_prompt.replace("{agent_name}", agent_name)
            .replace("{agent_description}", agent_description)
            .replace("{tool_instructions}", tool_instructions)
        )

    def build_user_prompt(self, key: str, user_input: str) -> str:
        return self.get_template(key).user_prompt_template.replace("{user_input}", user_input)

    def build_agent_messages(
        self,
        key: str,
        agent_name: str,
        agent_description: str,
        user_input: str,
        history: Sequence[Message] = (),
        tool_names: Sequence[str] = (),
        tool_descriptions: dict[str, str] | None = None,
    ) -> list[Message]:
        """
        System prompt, then history minus any system messages, then the user
        message unless history already ends with one.
        """
        system = self.build_system_prompt(
            key, agent_name, agent_description, tool_names, tool_descriptions
        )
        messages: list[Message] = [SystemMessage(content=system)]
        messages.extend(message for message in history if message.role != "system")

        if not history or history[-1].role != "user":
            messages.append(UserMessage(content=self.build_user_prompt(key, user_input)))
        return messages


default_prompt_builder = AgentPromptBuilder()
