"""Core type definitions for the capture crawler.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class CaptureMode(str, Enum):
    """Kind of artifact produced for each visited page."""

    SCREENSHOT = "screenshot"
    VIDEO = "video"


class SessionState(str, Enum):
    """Lifecycle states of one crawl session."""

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in {SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED}


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for summaries and events."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@dataclass(frozen=True, slots=True)
class Viewport:
    """Browser viewport size in CSS pixels."""

    width: int = 1920
    height: int = 1080

    def to_json(self) -> JSONDict:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class ArtifactDescriptor:
    """What a capturer produced for one page."""

    path: str
    kind: CaptureMode
    media_type: str
    size_bytes: int | None = None
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def to_json(self) -> JSONDict:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "media_type": self.media_type,
            "size_bytes": self.size_bytes,
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class PageResult:
    """One processed URL, successful or not, in visitation order."""

    sequence: int
    url: str
    title: str
    links_found: int | None = None
    artifact: str | None = None
    artifact_meta: dict[str, JSONValue] = field(default_factory=dict)
    error: str | None = None
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, *, sequence: int, url: str, exc: BaseException) -> "PageResult":
        return cls(
            sequence=sequence,
            url=url,
            title="Error",
            error=str(exc) or exc.__class__.__name__,
        )

    def to_json(self) -> JSONDict:
        payload: JSONDict = {
            "sequence": self.sequence,
            "url": self.url,
            "title": self.title,
            "timestamp": self.timestamp,
        }
        if self.ok:
            payload["links_found"] = self.links_found
            payload["artifact"] = self.artifact
            payload["artifact_meta"] = self.artifact_meta
        else:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class SkipRecord:
    """A discovered link suppressed because its URL shape was already seen."""

    url: str
    pattern: str
    reason: str = "duplicate_pattern"

    def to_json(self) -> JSONDict:
        return {"url": self.url, "pattern": self.pattern, "reason": self.reason}


def json_ready(value: Any) -> JSONValue:
    """Best-effort conversion of enums/records into JSON-compatible values."""

    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_json"):
        return value.to_json()
    if isinstance(value, dict):
        return {str(k): json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_ready(v) for v in value]
    return value


__all__ = [
    "ArtifactDescriptor",
    "CaptureMode",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "PageResult",
    "SessionState",
    "SkipRecord",
    "Viewport",
    "json_ready",
    "utc_now_iso",
]
