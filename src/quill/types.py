"""Core types for conversations and context compression.

All types use Pydantic models for validation and serialization.
snake_case naming throughout, with camelCase aliases for the JSON session files.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "tool"]

CompressionStrategyName = Literal["summary", "sliding-window", "importance"]

# --- Tool calls ---


class ToolCall(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId")
    name: str
    output: str = ""
    metadata: dict[str, Any] | None = None


# --- Messages ---


class Message(BaseModel):
    """A single conversation message.

    An assistant message carrying ``tool_calls`` is followed by exactly one
    ``tool`` message holding the results; the two are compressed as one unit.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    role: Role
    content: str = ""
    tool_calls: list[ToolCall] | None = Field(default=None, alias="toolCalls")
    tool_results: list[ToolResult] | None = Field(default=None, alias="toolResults")
    timestamp: int = 0  # Unix timestamp in milliseconds

    @property
    def has_tool_calls(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)


# --- Compression ---


class CompressionConfig(BaseModel):
    """Session compression settings. Immutable for the duration of a run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    enabled: bool = True
    threshold: int = Field(default=75, ge=0, le=100)
    strategy: CompressionStrategyName = "summary"
    preserve_tool_history: bool = Field(default=True, alias="preserveToolHistory")
    preserve_recent_messages: int = Field(default=10, ge=0, alias="preserveRecentMessages")
    notify_before_compression: bool = Field(default=True, alias="notifyBeforeCompression")


class CompressionResult(BaseModel):
    """Outcome of one compression invocation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    compressed: bool
    strategy: str
    original_token_count: int = Field(alias="originalTokenCount")
    compressed_token_count: int = Field(alias="compressedTokenCount")
    reduction_percentage: int = Field(default=0, alias="reductionPercentage")
    summary: str | None = None
    message: str
    compressed_messages: list[Message] | None = Field(default=None, alias="compressedMessages")


# --- Session ---


class Session(BaseModel):
    """A stored conversation plus the most recent compression status."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    messages: list[Message] = Field(default_factory=list)
    created_at: int = Field(default=0, alias="createdAt")
    updated_at: int = Field(default=0, alias="updatedAt")
    last_compression: CompressionResult | None = Field(default=None, alias="lastCompression")
