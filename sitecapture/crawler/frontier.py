"""Breadth-first frontier with exact-URL and URL-shape deduplication."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .patterns import PatternClassifier
from .types import SkipRecord
from .url import canonicalize_url


class EnqueueStatus(str, Enum):
    """Result status for frontier admission attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_PATTERN = "skipped_pattern"


class StopReason(str, Enum):
    """Why the crawl loop stopped pulling from the frontier."""

    EXHAUSTED = "exhausted"
    BUDGET = "budget"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class AdmitResult:
    """Outcome of one admission attempt."""

    status: EnqueueStatus
    url: str
    pattern: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Pending-work queue plus its dedup membership sets.

    - `queue` is FIFO, so pages are visited breadth-first.
    - A canonical URL is queued at most once and never again after it is visited.
    - With shape dedup on, a link whose shape matches an already-processed page is
      rejected and logged as a skip.

    One frontier belongs to one orchestrator loop; it is not shared across threads.
    """

    def __init__(self, classifier: PatternClassifier | None = None) -> None:
        self.classifier = classifier or PatternClassifier()

        self.queue: deque[str] = deque()
        self._queued: set[str] = set()
        self.visited: set[str] = set()
        self.visited_patterns: set[str] = set()
        self.skipped: list[SkipRecord] = []

        self._enqueued_count = 0
        self._skipped_seen_count = 0

    def __len__(self) -> int:
        return len(self.queue)

    def enqueue(self, url: str) -> AdmitResult:
        """Append the canonical form of `url` unless already queued or visited."""

        canonical = canonicalize_url(url)
        if canonical in self.visited or canonical in self._queued:
            self._skipped_seen_count += 1
            return AdmitResult(EnqueueStatus.SKIPPED_SEEN, canonical)

        self.queue.append(canonical)
        self._queued.add(canonical)
        self._enqueued_count += 1
        return AdmitResult(EnqueueStatus.ENQUEUED, canonical)

    def dequeue_next(self) -> str | None:
        """Pop the oldest pending URL, or None when the queue is exhausted."""

        if not self.queue:
            return None
        url = self.queue.popleft()
        self._queued.discard(url)
        return url

    def mark_visited(self, url: str) -> None:
        """Record a dequeued URL as processed; call once, before any collaborator call."""

        self.visited.add(canonicalize_url(url))

    def record_pattern(self, url: str) -> str:
        """Remember the shape of the page currently being processed."""

        pattern = self.classifier.classify(url)
        self.visited_patterns.add(pattern)
        return pattern

    def admit_link(self, url: str, dedup_enabled: bool) -> AdmitResult:
        """Enqueue a discovered link, applying shape dedup when enabled."""

        if not dedup_enabled:
            return self.enqueue(url)

        canonical = canonicalize_url(url)
        if canonical in self.visited or canonical in self._queued:
            self._skipped_seen_count += 1
            return AdmitResult(EnqueueStatus.SKIPPED_SEEN, canonical)

        pattern = self.classifier.classify(canonical)
        if pattern in self.visited_patterns:
            self.skipped.append(SkipRecord(url=canonical, pattern=pattern))
            return AdmitResult(EnqueueStatus.SKIPPED_PATTERN, canonical, pattern)

        result = self.enqueue(canonical)
        return AdmitResult(result.status, result.url, pattern)

    def admit_links(self, urls: Iterable[str], dedup_enabled: bool) -> list[AdmitResult]:
        """Admit many links, preserving input order."""

        return [self.admit_link(url, dedup_enabled) for url in urls]

    def should_stop(self, budget: int, cancelled: bool) -> StopReason | None:
        """Loop-top termination check; None means keep going."""

        if cancelled:
            return StopReason.CANCELLED
        if len(self.visited) >= budget:
            return StopReason.BUDGET
        if not self.queue:
            return StopReason.EXHAUSTED
        return None

    def progress_total(self, budget: int) -> int:
        """Upper bound on pages this crawl will visit, given what is known now."""

        return min(len(self.queue) + len(self.visited), budget)

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        return {
            "queue_size": len(self.queue),
            "visited": len(self.visited),
            "patterns": len(self.visited_patterns),
            "enqueued": self._enqueued_count,
            "skipped_seen": self._skipped_seen_count,
            "skipped_pattern": len(self.skipped),
        }


__all__ = [
    "AdmitResult",
    "EnqueueStatus",
    "Frontier",
    "StopReason",
]
