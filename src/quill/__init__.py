"""quill: context budget and compression engine for a CLI coding assistant."""

from quill.core.compression import (
    ContextUsage,
    calculate_context_usage,
    compress,
    estimate_tokens,
    format_context_usage,
    get_context_warning,
    preview_compression,
)
from quill.core.session import ConversationSession
from quill.core.session.events import (
    CompressionEndEvent,
    CompressionStartEvent,
    ContextWarningEvent,
    SessionEvent,
)
from quill.core.session.pool import SessionPool
from quill.core.sessions import SessionStore
from quill.core.settings import SettingsManager
from quill.limits import ModelLimits, get_model_limits, register_model_limits
from quill.types import (
    CompressionConfig,
    CompressionResult,
    Message,
    Session,
    ToolCall,
    ToolResult,
)

__all__ = [
    "CompressionConfig",
    "CompressionEndEvent",
    "CompressionResult",
    "CompressionStartEvent",
    "ContextUsage",
    "ContextWarningEvent",
    "ConversationSession",
    "Message",
    "ModelLimits",
    "Session",
    "SessionEvent",
    "SessionPool",
    "SessionStore",
    "SettingsManager",
    "ToolCall",
    "ToolResult",
    "calculate_context_usage",
    "compress",
    "estimate_tokens",
    "format_context_usage",
    "get_context_warning",
    "get_model_limits",
    "preview_compression",
    "register_model_limits",
]
