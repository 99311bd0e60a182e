"""Conversation session event types.

Emitted by ConversationSession to subscribers around compression runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quill.core.compression.tokens import ContextUsage
    from quill.types import CompressionResult


@dataclass
class SessionEvent:
    """Base class for session events."""

    type: str


@dataclass
class ContextWarningEvent(SessionEvent):
    """Emitted before a compression runs when notification is enabled."""

    usage: ContextUsage | None = None
    threshold: int = 0
    message: str = ""
    type: str = "context_warning"


@dataclass
class CompressionStartEvent(SessionEvent):
    """Emitted when a compression run begins."""

    strategy: str = ""
    usage_percentage: int = 0
    type: str = "compression_start"


@dataclass
class CompressionEndEvent(SessionEvent):
    """Emitted when a compression run finishes, applied or not."""

    result: CompressionResult | None = None
    type: str = "compression_end"
