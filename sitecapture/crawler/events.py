"""Crawl events and the sinks that deliver them to observers."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Protocol

from .types import JSONDict, json_ready, utc_now_iso

LOGGER = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Event names, in the order an observer sees them for one session."""

    SESSION_STARTED = "session_started"
    STATUS = "status"
    PROGRESS = "progress"
    CAPTURE_PROGRESS = "capture_progress"
    PAGE_RESULT = "page_result"
    PAGE_FAILED = "page_failed"
    COMPLETE = "complete"


class StatusLevel(str, Enum):
    """Severity attached to free-form status events."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CrawlEvent:
    """One event emitted for a session."""

    kind: EventKind
    session_id: str
    payload: JSONDict = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def terminal(self) -> bool:
        return self.kind == EventKind.COMPLETE

    def to_json(self) -> JSONDict:
        return {
            "kind": self.kind.value,
            "session_id": self.session_id,
            "payload": json_ready(self.payload),
            "created_at": self.created_at,
        }


class EventSink(Protocol):
    """Anything that accepts crawl events."""

    def emit(self, event: CrawlEvent) -> None:
        ...


class CollectingEventSink:
    """Keep every event in memory; useful for callers that poll and for tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[CrawlEvent] = []

    def emit(self, event: CrawlEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[CrawlEvent]:
        with self._lock:
            return list(self._events)

    def kinds(self) -> list[EventKind]:
        return [event.kind for event in self.events]

    def of_kind(self, kind: EventKind) -> list[CrawlEvent]:
        return [event for event in self.events if event.kind == kind]


class LoggingEventSink:
    """Mirror events into the standard logging tree."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER

    def emit(self, event: CrawlEvent) -> None:
        payload = event.payload
        if event.kind == EventKind.STATUS:
            level = {
                StatusLevel.WARNING.value: logging.WARNING,
                StatusLevel.ERROR.value: logging.ERROR,
            }.get(str(payload.get("level")), logging.INFO)
            self.logger.log(level, "[%s] %s", event.session_id, payload.get("message"))
        elif event.kind == EventKind.PROGRESS:
            self.logger.info(
                "[%s] page %s/%s: %s",
                event.session_id,
                payload.get("current"),
                payload.get("total"),
                payload.get("url"),
            )
        elif event.kind == EventKind.CAPTURE_PROGRESS:
            self.logger.debug("[%s] capture %s%%", event.session_id, payload.get("progress"))
        elif event.kind == EventKind.PAGE_FAILED:
            result = payload.get("result") or {}
            self.logger.warning("[%s] failed %s: %s", event.session_id, result.get("url"), result.get("error"))
        elif event.kind == EventKind.COMPLETE:
            self.logger.info(
                "[%s] complete: state=%s pages=%s",
                event.session_id,
                payload.get("state"),
                payload.get("total_pages"),
            )
        else:
            self.logger.debug("[%s] %s", event.session_id, event.kind.value)


class JsonlEventSink:
    """Append events as JSON lines to a file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, event: CrawlEvent) -> None:
        line = json.dumps(event.to_json(), ensure_ascii=False, sort_keys=True)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class FanoutEventSink:
    """Deliver each event to several sinks in order."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self.sinks = list(sinks)

    def emit(self, event: CrawlEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)


__all__ = [
    "CollectingEventSink",
    "CrawlEvent",
    "EventKind",
    "EventSink",
    "FanoutEventSink",
    "JsonlEventSink",
    "LoggingEventSink",
    "StatusLevel",
]
