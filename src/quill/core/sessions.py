"""JSON file session store.

Each session is one ``<id>.json`` file holding the messages and the most
recent compression result, serialized with camelCase aliases.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from quill.types import Session

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".quill"


def generate_id() -> str:
    return uuid4().hex[:16]


def default_data_dir() -> str:
    """Default session directory (~/.quill/sessions)."""
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME, "sessions")


class SessionStore:
    """Loads and saves sessions in a directory."""

    def __init__(self, data_dir: str | None = None) -> None:
        self._data_dir = data_dir or default_data_dir()

    @property
    def data_dir(self) -> str:
        return self._data_dir

    def _path(self, session_id: str) -> Path:
        return Path(self._data_dir) / f"{session_id}.json"

    def create(self, title: str = "") -> Session:
        """Create and save an empty session."""
        now = int(time.time() * 1000)
        session = Session(id=generate_id(), title=title, created_at=now, updated_at=now)
        self.save(session)
        return session

    def save(self, session: Session) -> None:
        os.makedirs(self._data_dir, exist_ok=True)
        self._path(session.id).write_text(
            session.model_dump_json(by_alias=True, exclude_none=True, indent=2) + "\n",
            encoding="utf-8",
        )

    def load(self, session_id: str) -> Session | None:
        """Load a session by ID. Returns None if missing or unreadable."""
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return Session.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Could not read session %s: %s", path, e)
            return None

    def list_sessions(self) -> list[Session]:
        """All readable sessions, most recently updated first."""
        if not os.path.isdir(self._data_dir):
            return []

        sessions: list[Session] = []
        for path in sorted(Path(self._data_dir).glob("*.json")):
            session = self.load(path.stem)
            if session is not None:
                sessions.append(session)
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions

    def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True
