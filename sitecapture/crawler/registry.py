"""Thread-safe registry of live sessions keyed by session id."""

from __future__ import annotations

import threading

from .session import Session


class SessionRegistry:
    """Live sessions shared between crawl threads and cancel requests.

    All access goes through one lock; callers get snapshots, never the live dict.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def add(self, session: Session) -> None:
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session already registered: {session.id}")
            self._sessions[session.id] = session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def cancel(self, session_id: str) -> bool:
        """Flag a live session as cancelled; unknown or ended ids are a no-op."""

        session = self.get(session_id)
        if session is None:
            return False
        return session.cancel()

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["SessionRegistry"]
