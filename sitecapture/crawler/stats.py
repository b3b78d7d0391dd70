"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .frontier import AdmitResult, EnqueueStatus
from .types import ArtifactDescriptor, PageResult, utc_now_iso


class StatsCollector:
    """Collect and summarize per-session crawl statistics.

    Pages are processed one at a time, but the collector stays lock-guarded so
    observers can read `to_json()` from another thread while a crawl runs.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        self._started_at = utc_now_iso()
        self._finished_at: str | None = None

        self._pages_ok = 0
        self._pages_failed = 0
        self._links_found_total = 0
        self._error_type_counts: dict[str, int] = defaultdict(int)

        self._enqueue_counts: dict[str, int] = defaultdict(int)
        self._frontier_snapshot: dict[str, int] = {}

        self._capture_count = 0
        self._capture_bytes_total = 0
        self._capture_elapsed_ms_total = 0

    def record_page(self, result: PageResult, *, error_type: str | None = None) -> None:
        """Record one processed page."""

        with self._lock:
            if result.ok:
                self._pages_ok += 1
                self._links_found_total += int(result.links_found or 0)
            else:
                self._pages_failed += 1
                self._error_type_counts[error_type or "Unknown"] += 1

    def record_admit(self, result: AdmitResult | EnqueueStatus) -> None:
        """Record one frontier admission outcome."""

        status = result.status if isinstance(result, AdmitResult) else result
        with self._lock:
            self._enqueue_counts[status.value] += 1

    def record_admit_many(self, results: list[AdmitResult]) -> None:
        for result in results:
            self.record_admit(result)

    def record_capture(self, artifact: ArtifactDescriptor, elapsed_ms: int) -> None:
        """Record one successful capture."""

        with self._lock:
            self._capture_count += 1
            self._capture_bytes_total += int(artifact.size_bytes or 0)
            self._capture_elapsed_ms_total += max(0, int(elapsed_ms))

    def record_frontier_snapshot(self, snapshot: Mapping[str, int]) -> None:
        """Attach latest frontier snapshot for diagnostics."""

        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def finish(self) -> None:
        """Mark crawl as finished."""

        with self._lock:
            if self._finished_at is None:
                self._finished_at = utc_now_iso()

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            start = _parse_iso_utc(self._started_at)
            end = _parse_iso_utc(self._finished_at) if self._finished_at else datetime.now(timezone.utc)
            duration_seconds = max(0.0, (end - start).total_seconds())
            pages_total = self._pages_ok + self._pages_failed

            return {
                "started_at": self._started_at,
                "finished_at": self._finished_at,
                "duration_seconds": duration_seconds,
                "pages_ok": self._pages_ok,
                "pages_failed": self._pages_failed,
                "pages_per_second": pages_total / duration_seconds if duration_seconds > 0 else 0.0,
                "links_found_total": self._links_found_total,
                "error_type_counts": dict(self._error_type_counts),
                "frontier": {
                    "admit_counts": dict(self._enqueue_counts),
                    "snapshot": dict(self._frontier_snapshot),
                },
                "capture": {
                    "count": self._capture_count,
                    "bytes_total": self._capture_bytes_total,
                    "elapsed_ms_total": self._capture_elapsed_ms_total,
                    "elapsed_ms_avg": (
                        self._capture_elapsed_ms_total / self._capture_count
                        if self._capture_count > 0
                        else 0.0
                    ),
                },
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
