"""Per-session conversation orchestrator.

ConversationSession owns one Session's message list and serializes every
mutation (appends and compression) behind a single asyncio.Lock:
- Message appends (user, assistant, tool results) with persistence
- Context usage reporting and warnings
- check_and_perform_compression after each exchange
- Event delivery to subscribers (context warning, compression start/end)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from quill.core.compression.engine import (
    CompressionStats,
    compress,
    get_compression_stats,
    preview_compression,
)
from quill.core.compression.tokens import (
    ContextUsage,
    calculate_context_usage,
    format_context_usage,
    get_context_warning,
)
from quill.core.session.events import (
    CompressionEndEvent,
    CompressionStartEvent,
    ContextWarningEvent,
    SessionEvent,
)
from quill.core.sessions import generate_id
from quill.types import Message

if TYPE_CHECKING:
    from quill.types import CompressionConfig, CompressionResult, Session, ToolCall, ToolResult

logger = logging.getLogger(__name__)

PersistCallback = Callable[["Session"], "Awaitable[None] | None"]
EventListener = Callable[[SessionEvent], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConversationSession:
    """Sole owner of a session's message list.

    The compression engine receives a snapshot of the list and returns a new
    one; the swap and the persistence call happen while the lock is held.
    """

    def __init__(
        self,
        session: Session,
        *,
        model_name: str,
        compression: CompressionConfig | None = None,
        persist: PersistCallback | None = None,
    ) -> None:
        self._session = session
        self._model_name = model_name
        self._compression = compression
        self._persist = persist
        self._lock = asyncio.Lock()
        self._event_listeners: list[EventListener] = []
        self._is_compressing = False

    # --- Properties ---

    @property
    def session(self) -> Session:
        return self._session

    @property
    def session_id(self) -> str:
        return self._session.id

    @property
    def messages(self) -> list[Message]:
        return list(self._session.messages)

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def compression_config(self) -> CompressionConfig | None:
        return self._compression

    @property
    def last_compression(self) -> CompressionResult | None:
        return self._session.last_compression

    @property
    def is_compressing(self) -> bool:
        return self._is_compressing

    def set_model_name(self, model_name: str) -> None:
        self._model_name = model_name

    def set_compression_config(self, config: CompressionConfig | None) -> None:
        self._compression = config

    # --- Events ---

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Subscribe to session events. Returns an unsubscribe function."""
        self._event_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._event_listeners:
                self._event_listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._event_listeners):
            listener(event)

    # --- Context usage ---

    def context_usage(self) -> ContextUsage:
        return calculate_context_usage(self._session.messages, self._model_name)

    def format_context_status(self) -> str:
        return format_context_usage(self.context_usage())

    def check_context_warning(self) -> str | None:
        return get_context_warning(self.context_usage())

    def get_compression_stats(self) -> CompressionStats:
        return get_compression_stats(self._session.messages)

    def preview_compression(self, config: CompressionConfig | None = None) -> CompressionResult | None:
        """What check_and_perform_compression would return, without applying it."""
        config = config or self._compression
        if config is None:
            return None
        return preview_compression(list(self._session.messages), config, self._model_name)

    # --- Appends ---

    async def append_message(self, message: Message) -> Message:
        async with self._lock:
            self._session.messages.append(message)
            self._session.updated_at = _now_ms()
            await self._save()
        return message

    async def add_user_message(self, content: str) -> Message:
        return await self.append_message(Message(id=generate_id(), role="user", content=content, timestamp=_now_ms()))

    async def add_assistant_message(self, content: str, tool_calls: list[ToolCall] | None = None) -> Message:
        message = Message(
            id=generate_id(),
            role="assistant",
            content=content,
            tool_calls=tool_calls or None,
            timestamp=_now_ms(),
        )
        return await self.append_message(message)

    async def add_tool_results(self, results: list[ToolResult]) -> Message:
        """Append the tool message answering the last assistant tool calls."""
        async with self._lock:
            messages = self._session.messages
            if not messages or not messages[-1].has_tool_calls:
                raise ValueError("Tool results must directly follow an assistant message with tool calls")

            message = Message(
                id=generate_id(),
                role="tool",
                content="\n".join(f"[{r.name}]: {r.output}" for r in results),
                tool_results=list(results),
                timestamp=_now_ms(),
            )
            messages[-1] = messages[-1].model_copy(update={"tool_results": list(results)})
            messages.append(message)
            self._session.updated_at = _now_ms()
            await self._save()
        return message

    # --- Compression ---

    async def check_and_perform_compression(self) -> CompressionResult | None:
        """Compress the history when the configured threshold is reached.

        Returns None when compression is not configured, otherwise the result
        of this invocation (also when nothing was compressed).
        """
        config = self._compression
        if config is None:
            return None

        async with self._lock:
            snapshot = list(self._session.messages)
            usage = calculate_context_usage(snapshot, self._model_name)
            triggered = config.enabled and usage.usage_percentage >= config.threshold

            if triggered:
                if config.notify_before_compression:
                    warning = get_context_warning(usage) or (
                        f"Context usage at {usage.usage_percentage}% reached the "
                        f"{config.threshold}% compression threshold."
                    )
                    self._emit(ContextWarningEvent(usage=usage, threshold=config.threshold, message=warning))
                self._emit(CompressionStartEvent(strategy=config.strategy, usage_percentage=usage.usage_percentage))

            self._is_compressing = True
            try:
                result = compress(snapshot, config, self._model_name)
            finally:
                self._is_compressing = False

            if result.compressed and result.compressed_messages is not None:
                self._session.messages = list(result.compressed_messages)
                # the applied list is already the session's messages
                self._session.last_compression = result.model_copy(update={"compressed_messages": None})
                self._session.updated_at = _now_ms()
                await self._save()

            if triggered:
                self._emit(CompressionEndEvent(result=result))

        return result

    # --- Persistence ---

    async def _save(self) -> None:
        if self._persist is None:
            return
        try:
            result = self._persist(self._session)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Failed to persist session %s", self._session.id)
            raise


__all__ = [
    "ConversationSession",
    "EventListener",
    "PersistCallback",
]
