# context_window.py
# Token estimation and transcript summarization.
#
# Pure and stateless. The estimate is a character-length heuristic, not a
# tokenizer: treat every number here as approximate and the constants as
# tunable.

import math
from collections.abc import Sequence

from agent_engine.models import AssistantMessage, Message

DEFAULT_CONTEXT_LIMIT = 4096

MODEL_CONTEXT_LIMITS: dict[str, int] = {
    "gpt-3.5-turbo": 4096,
    "gpt-4": 8192,
    "gpt-4o": 128000,
    "gpt-4o-mini": 128000,
    "gpt-4-turbo": 128000,
    "gpt-5": 200000,
    "o3": 200000,
    "claude-3-haiku": 200000,
    "claude-3-sonnet": 200000,
    "claude-3-opus": 200000,
    "claude-3.5-haiku": 200000,
    "claude-3.5-sonnet": 200000,
    "claude-sonnet-4": 200000,
    "claude-opus-4": 200000,
    "gemini-pro": 30720,
    "gemini-1.5-pro": 2000000,
    "gemini-2.0-flash": 1000000,
    "mistral-small-latest": 32000,
    "mistral-medium-latest": 32000,
    "mistral-large-latest": 32000,
    "llama3": 8192,
    "llama2": 4096,
    "mistral": 32000,
}


class TokenEstimator:
    """
    Character-count token heuristic.

    text     = max(ceil(chars / chars_per_token), 1)
    message  = overhead + len(role) + text(content) + len(name)
               + per tool call: tool_call_overhead + len(id, name, arguments)
               + len(tool_call_id)
    """

    def __init__(
        self,
        chars_per_token: int = 4,
        message_overhead: int = 3,
        tool_call_overhead: int = 10,
    ) -> None:
        self.chars_per_token = chars_per_token
        self.message_overhead = message_overhead
        self.tool_call_overhead = tool_call_overhead

    def text(self, content: str) -> int:
        return max(math.ceil(len(content) / self.chars_per_token), 1)

    def message(self, message: Message) -> int:
        tokens = self.message_overhead + len(message.role) + self.text(message.content)

        name = getattr(message, "name", None)
        if name:
            tokens += len(name)

        for call in getattr(message, "tool_calls", None) or []:
            tokens += self.tool_call_overhead
            tokens += len(call.id) + len(call.function.name) + len(call.function.arguments)

        tool_call_id = getattr(message, "tool_call_id", None)
        if tool_call_id:
            tokens += len(tool_call_id)

        return tokens

    def conversation(self, messages: Sequence[Message]) -> int:
        return sum(self.message(message) for message in messages)


DEFAULT_ESTIMATOR = TokenEstimator()


def estimate_token_count(content: str) -> int:
    return DEFAULT_ESTIMATOR.text(content)


def estimate_message_tokens(message: Message) -> int:
    return DEFAULT_ESTIMATOR.message(message)


def estimate_conversation_tokens(messages: Sequence[Message]) -> int:
    return DEFAULT_ESTIMATOR.conversation(messages)


def get_model_context_limit(model: str) -> int:
    """Context ceiling for `model`; a `provider/` prefix is ignored."""
    name = model.split("/", 1)[1] if "/" in model else model
    return MODEL_CONTEXT_LIMITS.get(name, DEFAULT_CONTEXT_LIMIT)


def should_summarize(
    messages: Sequence[Message],
    model: str,
    safety_margin: float = 0.8,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> bool:
    threshold = math.ceil(get_model_context_limit(model) * safety_margin)
    return estimator.conversation(messages) > threshold


def find_summarization_point(
    messages: Sequence[Message],
    model: str,
    target_tokens: int,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> int:
    """
    Index of the first message that would push the running total past
    `ceiling - target_tokens`. Message 0 is always counted and never cut.
    Returns len(messages) when everything fits.
    """
    available = get_model_context_limit(model) - target_tokens
    if not messages:
        return 0

    accumulated = estimator.message(messages[0])
    for index in range(1, len(messages)):
        tokens = estimator.message(messages[index])
        if accumulated + tokens > available:
            return index
        accumulated += tokens
    return len(messages)


def create_summary_message(summarized_count: int) -> AssistantMessage:
    return AssistantMessage(
        content=(
            f"[CONVERSATION SUMMARY] Previous {summarized_count} messages have been "
            "summarized to manage context window. Key points and context preserved."
        )
    )


def summarize_conversation(
    messages: Sequence[Message],
    model: str,
    target_tokens: int | None = None,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> list[Message]:
    """
    Collapse messages 1..cut-1 into one synthetic assistant message.

    Message 0 (the system prompt) and everything from the cut point on are
    kept verbatim. Without a target, or when already under it, the input is
    returned unchanged.
    """
    if not target_tokens or estimator.conversation(messages) <= target_tokens:
        return list(messages)

    cut = find_summarization_point(messages, model, target_tokens, estimator)
    if cut <= 1:
        return list(messages)

    return _collapse(messages, cut, estimator)


def find_tool_safe_point(
    messages: Sequence[Message],
    model: str,
    target_tokens: int,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> int:
    """
    Like find_summarization_point, but moved forward past any tool replies
    at the cut so a tool-call group is never split.
    """
    cut = find_summarization_point(messages, model, target_tokens, estimator)
    while cut < len(messages) and messages[cut].role == "tool":
        cut += 1
    return cut


def compact_conversation(
    messages: Sequence[Message],
    model: str,
    target_tokens: int | None = None,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> list[Message]:
    """
    summarize_conversation for transcripts that go back to a provider.

    Every kept tool message still follows the assistant message that
    requested it, so the result is a valid chat-completions history.
    """
    if not target_tokens or estimator.conversation(messages) <= target_tokens:
        return list(messages)

    cut = find_tool_safe_point(messages, model, target_tokens, estimator)
    if cut <= 1:
        return list(messages)

    return _collapse(messages, cut, estimator)


def _collapse(messages: Sequence[Message], cut: int, estimator: TokenEstimator) -> list[Message]:
    collapsed = messages[1:cut]
    summary = create_summary_message(len(collapsed))
    # Never trade a short prefix for a longer summary.
    if estimator.message(summary) >= estimator.conversation(collapsed):
        return list(messages)

    return [messages[0], summary, *messages[cut:]]
