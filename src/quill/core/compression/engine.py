"""Compression policy: decide whether to compress and run the chosen strategy.

The engine never raises for expected outcomes. Below-threshold, nothing to
reduce and rejected strategy output are all reported through
``CompressionResult.compressed`` and ``CompressionResult.message``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from quill.core.compression.strategies import get_strategy
from quill.core.compression.tokens import calculate_context_usage, estimate_tokens, round_half_up
from quill.core.compression.utils import partition_units
from quill.limits import get_model_limits
from quill.types import CompressionResult

if TYPE_CHECKING:
    from quill.types import CompressionConfig, Message

logger = logging.getLogger(__name__)

_ERROR_MENTION_RE = re.compile(r"\berror\b", re.IGNORECASE)


def reduction_percentage(original: int, compressed: int) -> int:
    if original <= 0:
        return 0
    return max(0, round_half_up((original - compressed) / original * 100))


def _skipped(strategy: str, tokens: int, message: str) -> CompressionResult:
    return CompressionResult(
        compressed=False,
        strategy=strategy,
        original_token_count=tokens,
        compressed_token_count=tokens,
        reduction_percentage=0,
        message=message,
    )


def _run_strategy(messages: list[Message], config: CompressionConfig, model_name: str) -> CompressionResult:
    """Run the configured strategy and enforce the engine-level invariants."""
    limits = get_model_limits(model_name)
    before = calculate_context_usage(messages, model_name)
    original = before.total_tokens

    outcome = get_strategy(config.strategy)(list(messages), config, limits)

    if [m.id for m in outcome.messages] == [m.id for m in messages]:
        logger.debug("Strategy %s left %d messages unchanged", config.strategy, len(messages))
        partition = partition_units(messages, config.preserve_recent_messages, config.preserve_tool_history)
        if partition.droppable:
            reason = "the older history is already condensed"
        else:
            reason = "the remaining history is protected (recent messages or tool history)"
        return _skipped(
            config.strategy,
            original,
            f"Nothing further to compress: {reason}. Context usage at {before.usage_percentage}%.",
        )

    after = calculate_context_usage(outcome.messages, model_name)
    compressed = after.total_tokens
    if compressed > original:
        logger.debug("Rejected %s output: %d -> %d tokens", config.strategy, original, compressed)
        return _skipped(
            config.strategy,
            original,
            f"Compression with {config.strategy} strategy would increase the context "
            f"from {original:,} to {compressed:,} tokens. Keeping the original messages.",
        )

    reduction = reduction_percentage(original, compressed)
    message = (
        f"Context compressed using {config.strategy} strategy. "
        f"Reduced from {original:,} to {compressed:,} tokens ({reduction}% reduction)."
    )
    if after.usage_percentage >= config.threshold:
        message += (
            f" Usage is still at {after.usage_percentage}% because the preserved history "
            f"exceeds the {config.threshold}% threshold."
        )

    return CompressionResult(
        compressed=True,
        strategy=config.strategy,
        original_token_count=original,
        compressed_token_count=compressed,
        reduction_percentage=reduction,
        summary=outcome.summary,
        message=message,
        compressed_messages=outcome.messages,
    )


def _evaluate(messages: list[Message], config: CompressionConfig, model_name: str) -> CompressionResult:
    usage = calculate_context_usage(messages, model_name)

    if not config.enabled:
        return _skipped("none", usage.total_tokens, "Compression is disabled.")

    if usage.usage_percentage < config.threshold:
        logger.debug("Usage %d%% below threshold %d%%", usage.usage_percentage, config.threshold)
        return _skipped(
            "none",
            usage.total_tokens,
            f"Context usage at {usage.usage_percentage}% is below threshold of "
            f"{config.threshold}%. No compression needed.",
        )

    return _run_strategy(messages, config, model_name)


def compress(messages: list[Message], config: CompressionConfig, model_name: str) -> CompressionResult:
    """Compress when usage has reached the configured threshold."""
    result = _evaluate(messages, config, model_name)
    if result.compressed:
        logger.info(
            "Compressed %d -> %d messages with %s (%d%% reduction)",
            len(messages),
            len(result.compressed_messages or []),
            result.strategy,
            result.reduction_percentage,
        )
    return result


def preview_compression(messages: list[Message], config: CompressionConfig, model_name: str) -> CompressionResult:
    """Show what ``compress`` would return for these messages. Nothing is applied."""
    return _evaluate(messages, config, model_name)


# --- Statistics ---


@dataclass
class CompressionStats:
    """Message counts and content signals for a conversation."""

    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    tool_messages: int = 0
    tool_calls: int = 0
    code_blocks: int = 0
    errors: int = 0
    estimated_tokens: int = 0


def get_compression_stats(messages: list[Message]) -> CompressionStats:
    stats = CompressionStats(total_messages=len(messages))
    for msg in messages:
        if msg.role == "user":
            stats.user_messages += 1
        elif msg.role == "assistant":
            stats.assistant_messages += 1
        else:
            stats.tool_messages += 1
        stats.tool_calls += len(msg.tool_calls or [])
        stats.code_blocks += msg.content.count("```") // 2
        if _ERROR_MENTION_RE.search(msg.content):
            stats.errors += 1
        stats.estimated_tokens += estimate_tokens(msg.content)
    return stats
