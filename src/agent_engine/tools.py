# tools.py
# Built-in tools. Every tool is built with define_tool and reaches the model
# only through the registry.
#
# Destructive actions come in pairs: a visible proposer that always answers
# with an approval request, and a hidden committer that does the work once
# the user has approved.

import os
import re
import subprocess
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agent_engine.models import ExecutionContext, ExecutionResult
from agent_engine.tool_builder import (
    ApprovalSpec,
    FollowUp,
    define_tool,
    pydantic_validator,
    with_confirm_flag,
)
from agent_engine.tool_registry import Tool, ToolRegistry

SUMMARY_LIMIT = 4000
DEFAULT_COMMAND_TIMEOUT_MS = 30000

DANGEROUS_COMMAND_PATTERNS = [
    re.compile(pattern)
    for pattern in (
        r"rm\s+-rf\s+",
        r"rm\s+.*\s+/",
        r"rm\s+.*\s+~",
        r"rm\s+.*\s+\*",
        r"\bsudo\s+",
        r"\bsu\s+",
        r"mkfs\.",
        r"dd\s+if=.*of=/dev/",
        r"\bshutdown\b",
        r"\breboot\b",
        r"\bhalt\b",
        r"\bpoweroff\b",
        r"\binit\s+[0-6]",
        r"curl\s+.*\|",
        r"wget\s+.*\|",
        r"python3?\s+-c",
        r"node\s+-e",
        r"bash\s+-c",
        r"\bsh\s+-c",
        r"kill\s+-9",
        r"\bpkill\s+",
        r"\bkillall\s+",
        r":\(\)\s*\{",
        r"while\s+true",
        r"chmod\s+777",
        r"chown\s+root",
        r"\bmount\s+",
        r"\bumount\s+",
        r"\biptables\b",
        r"\bufw\s+",
        r"cat\s+/etc/passwd",
        r"cat\s+/etc/shadow",
    )
]

_SENSITIVE_ENV_MARKERS = ("API", "KEY", "SECRET", "TOKEN", "PASSWORD", "CREDENTIAL", "AUTH")


def _ok(result: Any) -> ExecutionResult:
    return ExecutionResult(success=True, result=result)


def _fail(error: str) -> ExecutionResult:
    return ExecutionResult(success=False, result=None, error=error)


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------


def _tool_echo(args: dict, context: ExecutionContext) -> ExecutionResult:
    return _ok(args["message"])


def _tool_search(args: dict, context: ExecutionContext) -> ExecutionResult:
    from ddgs import DDGS

    query = args["query"].strip()
    if not query:
        return _fail("Error: no query provided.")

    try:
        # Coerce the generator to a list to ensure actual execution
        results = list(DDGS().text(query, max_results=4))
    except Exception as e:
        return _fail(f"Search failed: {e}")

    return _ok(
        [
            {
                "title": r.get("title", "No Title"),
                "body": r.get("body", ""),
                "href": r.get("href", ""),
            }
            for r in results
        ]
    )


def _tool_summarize(args: dict, context: ExecutionContext) -> ExecutionResult:
    text = args["text"].strip()
    if not text:
        return _fail("Error: no text provided.")
    return _ok(text[:SUMMARY_LIMIT])


# ---------------------------------------------------------------------------
# File writes (workspace-confined)
# ---------------------------------------------------------------------------


def _resolve_in_workspace(workspace: Path, path: str) -> Path | None:
    root = workspace.resolve()
    target = (root / path).resolve()
    if target != root and root not in target.parents:
        return None
    return target


def _file_write_tools(workspace: Path) -> list[Tool]:
    parameters = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path relative to the workspace."},
            "content": {"type": "string", "description": "Full file content."},
        },
        "required": ["path", "content"],
        "additionalProperties": False,
    }

    def approval_message(args: dict, context: ExecutionContext) -> str:
        return (
            f"FILE WRITE REQUEST\n\n"
            f"Path: {args['path']}\n"
            f"Workspace: {workspace}\n"
            f"Size: {len(args['content'])} characters\n"
            f"Agent: {context.agent_id}\n\n"
            "The file will be created or overwritten."
        )

    def write(args: dict, context: ExecutionContext) -> ExecutionResult:
        target = _resolve_in_workspace(workspace, args["path"].strip())
        if target is None:
            return _fail(f"SECURITY BLOCK: '{args['path']}' resolves outside the workspace.")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(args["content"], encoding="utf-8")
        return _ok(f"Wrote {len(args['content'])} bytes to {target}.")

    return [
        define_tool(
            name="file_write",
            description="Write a file inside the workspace. This tool requires user approval.",
            parameters=with_confirm_flag(parameters),
            approval=ApprovalSpec(
                message=approval_message,
                follow_up=FollowUp(
                    tool_name="file_write_approved",
                    build_args=lambda args: {"path": args["path"], "content": args["content"]},
                ),
            ),
        ),
        define_tool(
            name="file_write_approved",
            description="Write an approved file. Internal tool called after user approval.",
            parameters=parameters,
            handler=write,
            hidden=True,
        ),
    ]


# ---------------------------------------------------------------------------
# HTTP POST
# ---------------------------------------------------------------------------


def _http_post_tools() -> list[Tool]:
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Destination URL."},
            "payload": {"type": "object", "description": "JSON body."},
        },
        "required": ["url"],
        "additionalProperties": False,
    }

    def approval_message(args: dict, context: ExecutionContext) -> str:
        return (
            f"HTTP POST REQUEST\n\n"
            f"URL: {args['url']}\n"
            f"Payload keys: {', '.join(args.get('payload', {})) or '(empty)'}\n"
            f"Agent: {context.agent_id}\n\n"
            "Data will leave this machine."
        )

    def post(args: dict, context: ExecutionContext) -> ExecutionResult:
        import httpx

        url = args["url"].strip()
        if not url:
            return _fail("Error: no URL provided.")
        try:
            response = httpx.post(url, json=args.get("payload", {}), timeout=10)
        except httpx.HTTPError as e:
            return _fail(f"POST failed: {e}")
        return _ok({"url": url, "status_code": response.status_code, "bytes": len(response.content)})

    return [
        define_tool(
            name="http_post",
            description="POST a JSON payload to a URL. This tool requires user approval.",
            parameters=with_confirm_flag(parameters),
            approval=ApprovalSpec(
                message=approval_message,
                follow_up=FollowUp(
                    tool_name="http_post_approved",
                    build_args=lambda args: {"url": args["url"], "payload": args.get("payload", {})},
                ),
            ),
        ),
        define_tool(
            name="http_post_approved",
            description="POST an approved payload. Internal tool called after user approval.",
            parameters=parameters,
            handler=post,
            hidden=True,
        ),
    ]


# ---------------------------------------------------------------------------
# Shell commands
# ---------------------------------------------------------------------------


class CommandArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command: str = Field(..., min_length=1)
    working_directory: str | None = None
    timeout: int | None = Field(default=None, gt=0, description="Milliseconds.")


class ProposedCommandArgs(CommandArgs):
    confirm: bool | None = None


def is_dangerous_command(command: str) -> bool:
    return any(pattern.search(command) for pattern in DANGEROUS_COMMAND_PATTERNS)


def _sanitized_env() -> dict[str, str]:
    env = {
        key: value
        for key, value in os.environ.items()
        if not any(marker in key.upper() for marker in _SENSITIVE_ENV_MARKERS)
    }
    env.setdefault("PATH", "/usr/local/bin:/usr/bin:/bin")
    env["SHELL"] = "/bin/sh"
    return env


def _command_tools(workspace: Path) -> list[Tool]:
    parameters = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "Shell command to execute."},
            "working_directory": {"type": "string", "description": "Defaults to the workspace."},
            "timeout": {"type": "integer", "description": "Timeout in milliseconds (default 30000)."},
        },
        "required": ["command"],
        "additionalProperties": False,
    }

    def approval_message(args: ProposedCommandArgs, context: ExecutionContext) -> str:
        return (
            "COMMAND EXECUTION REQUEST\n\n"
            f"Command: {args.command}\n"
            f"Working Directory: {args.working_directory or workspace}\n"
            f"Timeout: {args.timeout or DEFAULT_COMMAND_TIMEOUT_MS}ms\n"
            f"Agent: {context.agent_id}\n\n"
            "This command will run on your system. Only approve commands you trust."
        )

    def run_command(args: CommandArgs, context: ExecutionContext) -> ExecutionResult:
        command = args.command.strip()
        if is_dangerous_command(command):
            return _fail(
                "Command appears to be potentially dangerous and was blocked for safety. "
                "If you need to run this command, please execute it manually."
            )

        cwd = Path(args.working_directory) if args.working_directory else workspace
        timeout_ms = args.timeout or DEFAULT_COMMAND_TIMEOUT_MS
        try:
            completed = subprocess.run(
                ["sh", "-c", command],
                cwd=cwd,
                env=_sanitized_env(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000,
            )
        except subprocess.TimeoutExpired:
            return _fail(f"Command timed out after {timeout_ms}ms")
        except OSError as e:
            return _fail(f"Command execution failed: {e}")

        return _ok(
            {
                "command": command,
                "working_directory": str(cwd),
                "exit_code": completed.returncode,
                "stdout": completed.stdout.strip(),
                "stderr": completed.stderr.strip(),
                "success": completed.returncode == 0,
            }
        )

    return [
        define_tool(
            name="execute_command",
            description="Execute a shell command on the system. This tool requires user approval.",
            parameters=with_confirm_flag(parameters),
            validate=pydantic_validator(ProposedCommandArgs),
            approval=ApprovalSpec(
                message=approval_message,
                follow_up=FollowUp(
                    tool_name="execute_command_approved",
                    build_args=lambda args: args.model_dump(exclude={"confirm"}, exclude_none=True),
                ),
            ),
        ),
        define_tool(
            name="execute_command_approved",
            description="Execute an approved shell command. Internal tool called after user approval.",
            parameters=parameters,
            handler=run_command,
            validate=pydantic_validator(CommandArgs),
            hidden=True,
        ),
    ]


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def builtin_tools(workspace: Path) -> list[Tool]:
    return [
        define_tool(
            name="echo",
            description="Repeat a message back.",
            parameters={
                "type": "object",
                "properties": {"message": {"type": "string"}},
                "required": ["message"],
                "additionalProperties": False,
            },
            handler=_tool_echo,
        ),
        define_tool(
            name="search",
            description="Search the web and return up to four results.",
            parameters={
                "type": "object",
                "properties": {"query": {"type": "string"}},
                "required": ["query"],
                "additionalProperties": False,
            },
            handler=_tool_search,
        ),
        define_tool(
            name="summarize",
            description=f"Trim text to at most {SUMMARY_LIMIT} characters.",
            parameters={
                "type": "object",
                "properties": {"text": {"type": "string"}},
                "required": ["text"],
                "additionalProperties": False,
            },
            handler=_tool_summarize,
        ),
        *_file_write_tools(workspace),
        *_http_post_tools(),
        *_command_tools(workspace),
    ]


def register_builtin_tools(registry: ToolRegistry, workspace: Path) -> None:
    registry.register_all(builtin_tools(workspace))
