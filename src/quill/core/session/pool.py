"""One ConversationSession per session id.

Keeping a single owner per id means every append and compression for that
session goes through the same lock.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from quill.core.session import ConversationSession

if TYPE_CHECKING:
    from quill.core.sessions import SessionStore
    from quill.types import CompressionConfig, Session


class SessionPool:
    """Hands out the ConversationSession owning each session id."""

    def __init__(
        self,
        store: SessionStore | None = None,
        *,
        model_name: str,
        compression: CompressionConfig | None = None,
    ) -> None:
        self._store = store
        self._model_name = model_name
        self._compression = compression
        self._sessions: dict[str, ConversationSession] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def attach(self, session: Session) -> ConversationSession:
        """Return the owner for ``session.id``, creating it on first use."""
        owner = self._sessions.get(session.id)
        if owner is None:
            owner = ConversationSession(
                session,
                model_name=self._model_name,
                compression=self._compression,
                persist=self._store.save if self._store else None,
            )
            self._sessions[session.id] = owner
        return owner

    def open(self, session_id: str) -> ConversationSession | None:
        """Get an attached session or load it from the store."""
        owner = self._sessions.get(session_id)
        if owner is not None:
            return owner
        if self._store is None:
            return None
        session = self._store.load(session_id)
        if session is None:
            return None
        return self.attach(session)

    def create(self, title: str = "") -> ConversationSession:
        if self._store is None:
            raise RuntimeError("SessionPool.create requires a session store")
        return self.attach(self._store.create(title))

    def release(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
