"""Token estimation and context usage.

Uses a character-based heuristic (4 chars per token). This is an
approximation: callers may rely on determinism and monotonicity, not on
agreement with any real tokenizer.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from quill.limits import get_model_limits

if TYPE_CHECKING:
    from quill.types import Message

# --- Constants ---

CHARS_PER_TOKEN = 4

NEAR_LIMIT_PERCENTAGE = 80
CRITICAL_PERCENTAGE = 90
ELEVATED_PERCENTAGE = 50


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


# --- Token estimation ---


def estimate_tokens(text: str | None) -> int:
    """Estimate tokens from text using character-based heuristic (chars / 4)."""
    if not text or text.isspace():
        return 0
    return max(0, round_half_up(len(text) / CHARS_PER_TOKEN))


def estimate_message_tokens(message: Message) -> int:
    """Estimate tokens for a message's content."""
    return estimate_tokens(message.content)


def count_budgeted_tokens(messages: Iterable[Message]) -> tuple[int, int]:
    """Sum estimated tokens of user and assistant messages.

    Returns (input_tokens, output_tokens). Tool messages are not budgeted.
    """
    input_tokens = 0
    output_tokens = 0
    for msg in messages:
        if msg.role == "user":
            input_tokens += estimate_message_tokens(msg)
        elif msg.role == "assistant":
            output_tokens += estimate_message_tokens(msg)
    return input_tokens, output_tokens


# --- Context usage ---


@dataclass
class ContextUsage:
    """Token usage snapshot for a message list against a model's limit."""

    total_tokens: int
    context_limit: int
    usage_percentage: int
    remaining_tokens: int
    is_near_limit: bool
    is_overflow: bool
    input_tokens: int
    output_tokens: int


def usage_percentage(total_tokens: int, context_limit: int) -> int:
    if context_limit <= 0:
        return 0
    return round_half_up(total_tokens / context_limit * 100)


def calculate_context_usage(messages: Iterable[Message], model_name: str) -> ContextUsage:
    """Compute a usage snapshot. Pure function of the messages and model name."""
    limits = get_model_limits(model_name)
    input_tokens, output_tokens = count_budgeted_tokens(messages)
    total = input_tokens + output_tokens
    percentage = usage_percentage(total, limits.context)

    return ContextUsage(
        total_tokens=total,
        context_limit=limits.context,
        usage_percentage=percentage,
        remaining_tokens=limits.context - total,
        is_near_limit=percentage >= NEAR_LIMIT_PERCENTAGE,
        is_overflow=total > limits.context,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


# --- Display ---


def usage_indicator(usage: ContextUsage) -> str:
    """Severity indicator for the four usage bands."""
    if usage.is_overflow or usage.usage_percentage >= CRITICAL_PERCENTAGE:
        return "🔴"
    if usage.usage_percentage >= NEAR_LIMIT_PERCENTAGE:
        return "🟡"
    if usage.usage_percentage >= ELEVATED_PERCENTAGE:
        return "🟠"
    return "🟢"


def format_context_usage(usage: ContextUsage) -> str:
    """Render a one-line context status."""
    status = ""
    if usage.is_overflow:
        status = " [OVERFLOW]"
    elif usage.is_near_limit:
        status = " [Near Limit]"

    return (
        f"{usage_indicator(usage)} Context: {usage.usage_percentage}% "
        f"({usage.total_tokens:,}/{usage.context_limit:,}) | "
        f"Remaining: {usage.remaining_tokens:,}{status}"
    )


def get_context_warning(usage: ContextUsage) -> str | None:
    """Warning text for high usage, or None when usage is comfortable."""
    if usage.is_overflow:
        return (
            f"Context overflow! Current: {usage.total_tokens:,} tokens, "
            f"Limit: {usage.context_limit:,} tokens. Please start a new session."
        )
    if usage.usage_percentage >= CRITICAL_PERCENTAGE:
        return f"Critical: Context usage at {usage.usage_percentage}%. Consider starting a new session soon."
    if usage.usage_percentage >= NEAR_LIMIT_PERCENTAGE:
        return f"Warning: Context usage at {usage.usage_percentage}%. Approaching limit."
    return None
