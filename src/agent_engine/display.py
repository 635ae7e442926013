# display.py
# All terminal output for the agent execution engine.
#
# This module owns presentation entirely. The runner and registry never
# format strings — they call named functions here. Swap this file to change
# the entire UI.
#
# Colour language:
#   cyan    — routing / run lifecycle
#   blue    — model calls and responses
#   yellow  — approvals, warnings, context management
#   green   — success / confirmed
#   red     — failures, halts
#   magenta — tool internals (arguments / outcomes)

import json
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from agent_engine.models import ExecutionResult, Message, ToolCall

console = Console()

_verbose = False


def configure(verbose: bool = False, quiet: bool = False) -> None:
    """Enable debug-level events, or silence the console entirely."""
    global _verbose
    _verbose = verbose
    console.quiet = quiet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    minutes, rest = divmod(ms, 60000)
    return f"{minutes}m {rest / 1000:.1f}s"


# ---------------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------------


def banner(provider: str, model: str, tools: list[str]) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Agent Execution Engine[/bold cyan]\n"
            "[dim]Bounded tool-calling loop with an approval gate for destructive actions[/dim]\n\n"
            f"[dim]Provider :[/dim] [white]{provider}[/white]\n"
            f"[dim]Model    :[/dim] [white]{model}[/white]\n"
            f"[dim]Tools    :[/dim] [white]{', '.join(tools) or '(none)'}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def prompt_received(prompt: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW REQUEST[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(prompt)}[/white]",
            title=_label("USER PROMPT", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


def agent_thinking(agent_name: str, iteration: int) -> None:
    verb = "is thinking…" if iteration == 0 else "is processing results…"
    console.print(
        _label("AGENT", "cyan"),
        f"[cyan] {agent_name} {verb}[/cyan] [dim]iteration={iteration + 1}[/dim]",
    )


def agent_completed(agent_name: str, iterations: int) -> None:
    console.print(
        f"  [bold green]✓ {agent_name} completed[/bold green] "
        f"[dim]after {iterations} iteration(s)[/dim]"
    )


def max_iterations_reached(agent_name: str, max_iterations: int) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold yellow]{agent_name} reached the iteration cap ({max_iterations}).[/bold yellow]\n"
            "[dim]No final answer was produced; the transcript is still returned.[/dim]",
            title=_label("MAX ITERATIONS", "yellow"),
            border_style="yellow",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Model calls (verbose only)
# ---------------------------------------------------------------------------


def model_request(provider: str, model: str, messages: list["Message"], tools: list[dict]) -> None:
    if not _verbose:
        return
    names = ", ".join(t["function"]["name"] for t in tools) or "(none)"
    console.print(
        f"  [blue]→ {provider}/{model}[/blue] "
        f"[dim]messages={len(messages)} tools={names}[/dim]"
    )


def model_response(content: str, tool_calls: list["ToolCall"] | None) -> None:
    if not _verbose:
        return
    if content:
        console.print(f"  [blue]← text[/blue]  [dim white]{escape(_mono(content, 200))}[/dim white]")
    for call in tool_calls or []:
        console.print(
            f"  [blue]← call[/blue]  [bold white]{call.function.name}[/bold white]"
            f"  [dim]{escape(_mono(call.function.arguments, 120))}[/dim]"
        )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


def tools_requested(agent_name: str, tool_names: list[str]) -> None:
    console.print(
        _label("TOOLS", "magenta"),
        f"[magenta] {agent_name} is using tools:[/magenta] [bold white]{', '.join(tool_names)}[/bold white]",
    )


def tool_arguments(tool_name: str, args: dict) -> None:
    if not _verbose:
        return
    console.print(f"  [magenta]Args[/magenta]     [bold white]{tool_name}[/bold white]  [dim]{escape(json.dumps(args))}[/dim]")


def tool_arguments_malformed(tool_name: str, raw: str) -> None:
    console.print(
        f"  [yellow]⚠ Malformed arguments for[/yellow] [bold white]{tool_name}[/bold white]"
        f" [dim]{escape(_mono(raw, 80))}[/dim] [yellow]— using {{}}[/yellow]"
    )


def tool_executed(tool_name: str, duration_ms: int, result: "ExecutionResult") -> None:
    duration = format_duration(duration_ms)
    payload: Any = result.result

    if result.success:
        console.print(
            f"  [bold green]✓[/bold green] [bold white]{tool_name}[/bold white] [dim]({duration})[/dim]"
        )
        return

    if isinstance(payload, dict) and payload.get("approval_required"):
        follow_up = payload.get("execute_tool_name")
        console.print(
            Panel(
                f"[white]{escape(str(payload.get('message', '')))}[/white]"
                + (f"\n\n[dim]Follow-up tool: {follow_up}[/dim]" if follow_up else ""),
                title=_label(f"{tool_name} ⚠ APPROVAL REQUIRED ({duration})", "yellow"),
                border_style="yellow",
                padding=(0, 2),
            )
        )
        return

    console.print(
        f"  [bold red]✗[/bold red] [bold white]{tool_name}[/bold white] [dim]({duration})[/dim]"
        f"  [red]{escape(_mono(result.error or 'failed', 140))}[/red]"
    )


def tool_raised(tool_name: str, duration_ms: int, error: str) -> None:
    console.print(
        f"  [bold red]✗[/bold red] [bold white]{tool_name}[/bold white] "
        f"[dim]({format_duration(duration_ms)})[/dim]  [red]raised: {escape(_mono(error, 140))}[/red]"
    )


def tool_not_found(tool_name: str) -> None:
    console.print(
        Panel(
            f"[bold red]Tool [white]{tool_name!r}[/white] is not registered.[/bold red]\n"
            "[dim]The run cannot continue with a capability that does not exist. Halting.[/dim]",
            title=_label("TOOL NOT FOUND ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def tool_summary(tool_results: dict[str, Any]) -> None:
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Tool", width=24)
    table.add_column("Outcome", justify="center", width=10)
    table.add_column("Result", style="dim white")

    for name, value in tool_results.items():
        failed = isinstance(value, dict) and "error" in value
        outcome = "[bold red]✗[/bold red]" if failed else "[bold green]✓[/bold green]"
        table.add_row(name, outcome, _mono(json.dumps(value, default=str), 60))

    console.print(Panel(table, title="[dim]LAST TOOL TURN[/dim]", border_style="dim", padding=(0, 1)))


# ---------------------------------------------------------------------------
# Context management
# ---------------------------------------------------------------------------


def context_summarized(before: int, after: int, before_tokens: int, after_tokens: int) -> None:
    console.print(
        _label("CONTEXT", "yellow"),
        f"[yellow] Transcript summarized:[/yellow] [white]{before} → {after} messages[/white]"
        f" [dim](~{before_tokens} → ~{after_tokens} tokens)[/dim]",
    )


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

_GUIDANCE = {
    "LLMAuthenticationError": (
        "Authentication Failed",
        "Check the API key for this provider (OPENROUTER_API_KEY / OPENAI_API_KEY in your .env).",
    ),
    "LLMRateLimitError": (
        "Rate Limited",
        "The provider is throttling requests. Wait a moment and try again, "
        "or switch to a model with higher limits.",
    ),
    "LLMConfigurationError": (
        "Provider Not Configured",
        "Set AGENT_PROVIDER to a configured provider (openrouter or openai).",
    ),
}


def model_error(exc: Exception) -> None:
    title, guidance = _GUIDANCE.get(
        type(exc).__name__,
        ("Model Request Failed", "Check the model name and your network connection, then retry."),
    )
    provider = getattr(exc, "provider", "unknown")
    console.print()
    console.print(
        Panel(
            f"[bold red]{escape(str(exc))}[/bold red]\n\n[white]{guidance}[/white]",
            title=_label(f"{title.upper()} ✗", "red"),
            subtitle=f"[dim]provider: {provider}[/dim]",
            border_style="red",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Final result
# ---------------------------------------------------------------------------


def final_result(result: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(result)}[/white]",
            title=_label("RESULT", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def halt(reason: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
