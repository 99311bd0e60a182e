"""Context compression for managing conversation history size.

Estimates context usage against the model's limit and, once a configurable
threshold is reached, shrinks the history with a summary, sliding-window or
importance strategy while keeping tool-call pairs and recent messages intact.
"""

from quill.core.compression.engine import (
    CompressionStats,
    compress,
    get_compression_stats,
    preview_compression,
    reduction_percentage,
)
from quill.core.compression.strategies import (
    STRATEGIES,
    SUMMARY_PREFIX,
    StrategyOutcome,
    build_summary_text,
    drop_least_important,
    get_strategy,
    is_summary_message,
    score_message,
    slide_window,
    summarize_history,
)
from quill.core.compression.tokens import (
    CHARS_PER_TOKEN,
    ContextUsage,
    calculate_context_usage,
    estimate_message_tokens,
    estimate_tokens,
    format_context_usage,
    get_context_warning,
)
from quill.core.compression.utils import (
    CompressionUnit,
    UnitPartition,
    build_units,
    partition_units,
)

__all__ = [
    "CHARS_PER_TOKEN",
    "STRATEGIES",
    "SUMMARY_PREFIX",
    "CompressionStats",
    "CompressionUnit",
    "ContextUsage",
    "StrategyOutcome",
    "UnitPartition",
    "build_summary_text",
    "build_units",
    "calculate_context_usage",
    "compress",
    "drop_least_important",
    "estimate_message_tokens",
    "estimate_tokens",
    "format_context_usage",
    "get_compression_stats",
    "get_context_warning",
    "get_strategy",
    "is_summary_message",
    "partition_units",
    "preview_compression",
    "reduction_percentage",
    "score_message",
    "slide_window",
    "summarize_history",
]
