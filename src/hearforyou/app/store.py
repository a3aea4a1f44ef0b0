"""Conversation session stores."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from hearforyou.dialog.session import ConversationSession


class SessionStore(Protocol):
    """Keyed storage for conversation sessions."""

    def get(self, key: str) -> ConversationSession | None: ...

    def save(self, session: ConversationSession) -> None: ...

    def delete(self, key: str) -> None: ...

    def sessions(self) -> list[ConversationSession]: ...


class InMemorySessionStore:
    """Process-local store; sessions are lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sessions: dict[str, ConversationSession] = {}

    def get(self, key: str) -> ConversationSession | None:
        with self._lock:
            session = self._sessions.get(key)
            return session.model_copy(deep=True) if session is not None else None

    def save(self, session: ConversationSession) -> None:
        with self._lock:
            self._sessions[session.key] = session.model_copy(deep=True)

    def delete(self, key: str) -> None:
        with self._lock:
            self._sessions.pop(key, None)

    def sessions(self) -> list[ConversationSession]:
        with self._lock:
            return [session.model_copy(deep=True) for session in self._sessions.values()]


class JSONSessionStore:
    """
    A simple JSON-based session store.

    Sessions are kept as plain JSON documents in one file, so a restarted host
    can pick up conversations, including sub-flows waiting on an external job.
    """

    def __init__(self, file_path: str | Path):
        self.file_path = Path(file_path)
        self._lock = threading.RLock()
        self._sessions: dict[str, dict[str, Any]] = self._load()

    def _load(self) -> dict[str, dict[str, Any]]:
        """Load sessions from JSON file."""
        if self.file_path.exists():
            try:
                with open(self.file_path, encoding="utf-8") as f:
                    loaded = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading session store: {e}")
                return {}
            if isinstance(loaded, dict):
                return loaded
            logger.error("Error loading session store: expected a JSON object")
        return {}

    def _save(self) -> None:
        """Save sessions to JSON file."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(self._sessions, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"Error saving session store: {e}")

    def _deserialize(self, data: dict[str, Any]) -> ConversationSession | None:
        try:
            return ConversationSession.model_validate(data)
        except ValidationError as e:
            logger.error(f"Error deserializing session {data.get('key')}: {e}")
            return None

    def get(self, key: str) -> ConversationSession | None:
        with self._lock:
            data = self._sessions.get(key)
            if data is None:
                return None
            return self._deserialize(data)

    def save(self, session: ConversationSession) -> None:
        with self._lock:
            self._sessions[session.key] = session.model_dump(mode="json")
            self._save()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._sessions.pop(key, None) is not None:
                self._save()

    def sessions(self) -> list[ConversationSession]:
        with self._lock:
            sessions = []
            for data in self._sessions.values():
                session = self._deserialize(data)
                if session is not None:
                    sessions.append(session)
            return sessions
