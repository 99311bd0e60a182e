"""Compression strategies: summary, sliding-window and importance.

Each strategy is a pure function ``(messages, config, limits) -> StrategyOutcome``.
Strategies only remove units listed as droppable by ``partition_units``, so the
recency floor and tool-call pairing are preserved by construction.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from quill.core.compression.tokens import count_budgeted_tokens, usage_percentage
from quill.core.compression.utils import (
    FileOperations,
    UnitPartition,
    compute_file_lists,
    excerpt,
    extract_file_ops_from_message,
    format_file_operations,
    partition_units,
)
from quill.types import Message

if TYPE_CHECKING:
    from quill.limits import ModelLimits
    from quill.types import CompressionConfig, CompressionStrategyName

SUMMARY_PREFIX = "[Conversation Summary]"
SUMMARY_ID_PREFIX = "summary-"

TOPICS_EXCERPT_CHARS = 300
PREVIOUS_SUMMARY_EXCERPT_CHARS = 300


@dataclass
class StrategyOutcome:
    """Messages produced by a strategy and an optional description."""

    messages: list[Message]
    summary: str | None = None


StrategyFn = Callable[["list[Message]", "CompressionConfig", "ModelLimits"], StrategyOutcome]


def _drop_until_below(
    partition: UnitPartition,
    order: list[int],
    total_tokens: int,
    threshold: int,
    limits: ModelLimits,
) -> list[int]:
    """Take units from ``order`` until usage drops below the threshold."""
    dropped: list[int] = []
    tokens = total_tokens
    for pos in order:
        if usage_percentage(tokens, limits.context) < threshold:
            break
        dropped.append(pos)
        tokens -= partition.units[pos].tokens
    return dropped


def _preserved_counts(partition: UnitPartition) -> tuple[int, int]:
    """Number of messages kept by the recency floor and by tool history."""
    recent = sum(len(partition.units[i].messages) for i in partition.protected)
    tools = sum(len(partition.units[i].messages) for i in partition.exempt)
    return recent, tools


# --- Sliding window ---


def slide_window(messages: list[Message], config: CompressionConfig, limits: ModelLimits) -> StrategyOutcome:
    """Forget the oldest droppable history first."""
    partition = partition_units(messages, config.preserve_recent_messages, config.preserve_tool_history)
    total = sum(count_budgeted_tokens(messages))
    dropped = _drop_until_below(partition, partition.droppable, total, config.threshold, limits)
    if not dropped:
        return StrategyOutcome(messages=list(messages))

    kept = partition.assemble(dropped)
    recent, tools = _preserved_counts(partition)
    description = (
        f"Sliding window compression removed {len(messages) - len(kept)} older messages "
        f"to stay within the context limit. Preserved {recent} recent messages"
    )
    if tools:
        description += f" and {tools} tool-related messages"
    return StrategyOutcome(messages=kept, summary=description + ".")


# --- Summary ---


def is_summary_message(message: Message) -> bool:
    return (
        message.role == "assistant"
        and message.id.startswith(SUMMARY_ID_PREFIX)
        and message.content.startswith(SUMMARY_PREFIX)
    )


def build_summary_text(messages: list[Message]) -> str:
    """Condensed description of the given messages."""
    previous = [m for m in messages if is_summary_message(m)]
    user_messages = [m for m in messages if m.role == "user"]
    assistant_messages = [m for m in messages if m.role == "assistant" and not is_summary_message(m)]

    lines = [
        f"The conversation covered {len(user_messages)} user queries "
        f"and {len(assistant_messages)} assistant responses."
    ]
    if user_messages:
        topics = " | ".join(m.content for m in user_messages)
        lines.append("Main topics discussed: " + excerpt(topics, TOPICS_EXCERPT_CHARS))

    tool_calls = sum(len(m.tool_calls or []) for m in assistant_messages)
    if tool_calls:
        lines.append(f"{tool_calls} tool calls were made.")

    file_ops = FileOperations()
    for msg in assistant_messages:
        extract_file_ops_from_message(msg, file_ops)
    file_ops_text = format_file_operations(*compute_file_lists(file_ops))
    if file_ops_text:
        lines.append(file_ops_text)

    if previous:
        earlier = previous[-1].content[len(SUMMARY_PREFIX) :]
        lines.append("Earlier context: " + excerpt(earlier, PREVIOUS_SUMMARY_EXCERPT_CHARS))

    return "\n".join(lines)


def summarize_history(messages: list[Message], config: CompressionConfig, limits: ModelLimits) -> StrategyOutcome:
    """Replace all droppable history with a single summary message."""
    partition = partition_units(messages, config.preserve_recent_messages, config.preserve_tool_history)
    droppable = partition.droppable
    dropped_messages = [m for pos in droppable for m in partition.units[pos].messages]

    # Already condensed
    if not dropped_messages or (len(dropped_messages) == 1 and is_summary_message(dropped_messages[0])):
        return StrategyOutcome(messages=list(messages))

    text = build_summary_text(dropped_messages)
    summary_message = Message(
        id=f"{SUMMARY_ID_PREFIX}{uuid.uuid4().hex[:12]}",
        role="assistant",
        content=f"{SUMMARY_PREFIX}\n{text}",
        timestamp=int(time.time() * 1000),
    )
    return StrategyOutcome(messages=partition.assemble(droppable, summary_message), summary=text)


# --- Importance ---

_ERROR_RE = re.compile(r"Error:|Traceback|Exception|\bfailed\b")
_CODE_RE = re.compile(r"```|\bdef |\bclass |\bconst |\bimport ")
_PATH_RE = re.compile(
    r"(?:[\w.-]+/)*[\w-]+\.(?:py|ts|tsx|js|json|md|txt|toml|ya?ml|sh|go|rs|java|c|h|cpp|html|css)\b"
)

ERROR_BONUS = 2.0
CODE_BONUS = 2.0
TOOL_BONUS = 5.0
USER_BONUS = 3.0
REFERENCED_BONUS = 1.0
MAX_LENGTH_BONUS = 2.0


def _mentioned_paths(message: Message) -> set[str]:
    paths = set(_PATH_RE.findall(message.content))
    for call in message.tool_calls or []:
        path = call.arguments.get("file_path") or call.arguments.get("path")
        if isinstance(path, str) and path:
            paths.add(path)
    return paths


def score_message(message: Message, referenced_later: bool = False) -> float:
    """Heuristic importance of a single message; higher is kept longer."""
    score = 1.0
    if message.role == "tool" or message.has_tool_calls:
        score += TOOL_BONUS
    if message.role == "user":
        score += USER_BONUS
    score += min(len(message.content) / 500, MAX_LENGTH_BONUS)
    if _ERROR_RE.search(message.content):
        score += ERROR_BONUS
    if _CODE_RE.search(message.content):
        score += CODE_BONUS
    if referenced_later:
        score += REFERENCED_BONUS
    return score


def score_units(messages: list[Message], partition: UnitPartition) -> dict[int, float]:
    """Score every droppable unit. Pairs score the mean of their messages."""
    last_seen: dict[str, int] = {}
    for index, msg in enumerate(messages):
        for path in _mentioned_paths(msg):
            last_seen[path] = index

    scores: dict[int, float] = {}
    for pos in partition.droppable:
        unit = partition.units[pos]
        unit_scores = []
        for msg in unit.messages:
            referenced = any(last_seen.get(p, -1) >= unit.end for p in _mentioned_paths(msg))
            unit_scores.append(score_message(msg, referenced_later=referenced))
        scores[pos] = sum(unit_scores) / len(unit_scores)
    return scores


def drop_least_important(
    messages: list[Message], config: CompressionConfig, limits: ModelLimits
) -> StrategyOutcome:
    """Drop the lowest-scoring droppable units first."""
    partition = partition_units(messages, config.preserve_recent_messages, config.preserve_tool_history)
    scores = score_units(messages, partition)
    order = sorted(scores, key=lambda pos: (scores[pos], pos))

    total = sum(count_budgeted_tokens(messages))
    dropped = _drop_until_below(partition, order, total, config.threshold, limits)
    if not dropped:
        return StrategyOutcome(messages=list(messages))

    kept = partition.assemble(dropped)
    recent, tools = _preserved_counts(partition)
    historical = len(kept) - recent - tools
    description = (
        f"Importance-based compression removed {len(messages) - len(kept)} less important messages. "
        f"Preserved {recent} recent messages, {tools} tool-related messages, "
        f"and {historical} important historical messages."
    )
    return StrategyOutcome(messages=kept, summary=description)


# --- Dispatch ---

STRATEGIES: dict[str, StrategyFn] = {
    "summary": summarize_history,
    "sliding-window": slide_window,
    "importance": drop_least_important,
}


def get_strategy(name: CompressionStrategyName) -> StrategyFn:
    return STRATEGIES[name]
