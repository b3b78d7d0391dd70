"""One crawl's lifecycle state, cancellation token, and event emission."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from .config import CrawlOptions
from .events import CrawlEvent, EventKind, EventSink, StatusLevel
from .types import PageResult, SessionState, utc_now_iso
from .url import domain_label

LOGGER = logging.getLogger(__name__)

SESSION_KIND_CRAWL = "crawl"
SESSION_KIND_VIDEO = "video"

_ALLOWED_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.CREATED: {SessionState.RUNNING, SessionState.FAILED},
    SessionState.RUNNING: {SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED},
}


def generate_session_id(url: str, *, suffix: str | None = None, now: datetime | None = None) -> str:
    """Build `<domain>_<YYYY-MM-DD>_<short-uuid>[_<suffix>]`."""

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    short_id = uuid.uuid4().hex[:8]
    session_id = f"{domain_label(url)}_{stamp}_{short_id}"
    if suffix:
        session_id = f"{session_id}_{suffix}"
    return session_id


class CancellationToken:
    """Cooperative, one-way cancel flag polled by the crawl loop."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class _NullSink:
    def emit(self, event: CrawlEvent) -> None:
        return None


class Session:
    """State for one crawl, exclusively owned by its orchestrator loop.

    The only field touched from other threads is the cancel token; event emission
    is serialized so nothing reaches the sink after the terminal `complete` event.
    """

    def __init__(
        self,
        session_id: str,
        start_url: str,
        options: CrawlOptions,
        *,
        sink: EventSink | None = None,
        kind: str = SESSION_KIND_CRAWL,
        token: CancellationToken | None = None,
    ) -> None:
        self.id = session_id
        self.start_url = start_url
        self.options = options
        self.kind = kind
        self.token = token or CancellationToken()
        self.sink: EventSink = sink or _NullSink()

        self.state = SessionState.CREATED
        self.start_time = utc_now_iso()
        self.end_time: str | None = None
        self.results: list[PageResult] = []

        self._emit_lock = threading.Lock()
        self._closed = False

    @classmethod
    def create(
        cls,
        start_url: str,
        options: CrawlOptions,
        *,
        sink: EventSink | None = None,
        kind: str = SESSION_KIND_CRAWL,
    ) -> "Session":
        suffix = "video" if kind == SESSION_KIND_VIDEO else None
        return cls(
            generate_session_id(start_url, suffix=suffix),
            start_url,
            options,
            sink=sink,
            kind=kind,
        )

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, state={self.state.value}, pages={len(self.results)})"

    @property
    def budget(self) -> int:
        return self.options.max_pages

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    def cancel(self) -> bool:
        """Request cancellation; returns False when the session already ended."""

        with self._emit_lock:
            if self._closed or self.state.terminal:
                return False
            self.token.cancel()
        return True

    def transition(self, new_state: SessionState) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(f"Invalid session transition {self.state.value} -> {new_state.value}")

        LOGGER.debug("Session %s: %s -> %s", self.id, self.state.value, new_state.value)
        self.state = new_state
        if new_state.terminal and self.end_time is None:
            self.end_time = utc_now_iso()

    def append_result(self, result: PageResult) -> None:
        self.results.append(result)

    def emit(self, kind: EventKind, payload: dict[str, Any] | None = None) -> bool:
        """Send one event to the sink; returns False if the session already closed.

        A failing observer never aborts the crawl: sink errors are logged and the
        event counts as delivered.
        """

        event = CrawlEvent(kind=kind, session_id=self.id, payload=dict(payload or {}))
        with self._emit_lock:
            if self._closed:
                LOGGER.debug("Dropping %s event for closed session %s", kind.value, self.id)
                return False
            if event.terminal:
                self._closed = True
            try:
                self.sink.emit(event)
            except Exception:
                LOGGER.exception("Session %s: event sink failed on %s", self.id, kind.value)
        return True

    def status(self, message: str, level: StatusLevel = StatusLevel.INFO) -> bool:
        return self.emit(EventKind.STATUS, {"level": level.value, "message": message})


__all__ = [
    "CancellationToken",
    "SESSION_KIND_CRAWL",
    "SESSION_KIND_VIDEO",
    "Session",
    "generate_session_id",
]
