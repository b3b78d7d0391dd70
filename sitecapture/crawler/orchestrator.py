"""Crawl loop: frontier, navigator, capturer, storage, and stats wired together."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from .capture import Capturer
from .errors import SetupError
from .events import EventKind, StatusLevel
from .frontier import EnqueueStatus, Frontier, StopReason
from .navigator import Navigator
from .patterns import PatternClassifier
from .registry import SessionRegistry
from .session import Session
from .stats import StatsCollector
from .storage import Storage
from .types import CaptureMode, PageResult, SessionState, json_ready
from .url import url_origin

LOGGER = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Drive one session from `created` to a terminal state.

    Pages are processed strictly one after another on the calling thread. Any
    exception raised while handling a page becomes a failed result and the loop
    moves on; anything that escapes the loop ends the session as `failed`. The
    cleanup path always closes the browser page, persists the summary, and emits
    exactly one `complete` event.
    """

    def __init__(
        self,
        session: Session,
        navigator: Navigator,
        capturer: Capturer,
        storage: Storage,
        *,
        classifier: PatternClassifier | None = None,
        stats: StatsCollector | None = None,
        registry: SessionRegistry | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.navigator = navigator
        self.capturer = capturer
        self.storage = storage
        self.frontier = Frontier(classifier)
        self.stats = stats or StatsCollector()
        self.registry = registry
        self._sleep = sleep

        self._page: Any = None
        self._stop_reason: StopReason | None = None
        self._origin = url_origin(session.start_url) or session.start_url

    def run(self) -> SessionState:
        """Run the crawl to completion and return the terminal state."""

        session = self.session
        session.emit(
            EventKind.SESSION_STARTED,
            {
                "session_id": session.id,
                "start_url": session.start_url,
                "kind": session.kind,
                "options": session.options.to_json(),
            },
        )

        failure: BaseException | None = None
        try:
            session.status("Launching browser...")
            self._page = self.navigator.open_page(session.options.viewport)
            session.transition(SessionState.RUNNING)

            self.frontier.enqueue(session.start_url)
            self._loop()
        except SetupError as exc:
            failure = exc
            LOGGER.error("Session %s could not start: %s", session.id, exc)
            session.status(f"Crawl error: {exc}", StatusLevel.ERROR)
        except Exception as exc:
            failure = exc
            LOGGER.exception("Session %s aborted", session.id)
            session.status(f"Crawl error: {exc}", StatusLevel.ERROR)
        finally:
            self._finish(failure)

        return session.state

    def _loop(self) -> None:
        session = self.session
        options = session.options
        dedup = options.smart_dedup

        while True:
            self._stop_reason = self.frontier.should_stop(session.budget, session.cancelled)
            if self._stop_reason is not None:
                LOGGER.info("Session %s stopping: %s", session.id, self._stop_reason.value)
                return

            url = self.frontier.dequeue_next()
            if url is None:
                self._stop_reason = StopReason.EXHAUSTED
                return
            self.frontier.mark_visited(url)
            sequence = len(self.frontier.visited)

            session.emit(
                EventKind.PROGRESS,
                {
                    "current": sequence,
                    "total": self.frontier.progress_total(session.budget),
                    "url": url,
                },
            )

            try:
                result = self._process_page(sequence, url, dedup)
            except Exception as exc:
                LOGGER.warning("Session %s: page %s failed: %s", session.id, url, exc)
                result = PageResult.failure(sequence=sequence, url=url, exc=exc)
                session.append_result(result)
                self.stats.record_page(result, error_type=exc.__class__.__name__)
                session.status(f"Failed to capture {url}: {result.error}", StatusLevel.ERROR)
                session.emit(EventKind.PAGE_FAILED, {"result": result.to_json()})
                continue

            session.append_result(result)
            self.stats.record_page(result)
            session.emit(EventKind.PAGE_RESULT, {"result": result.to_json()})
            session.status(f"Completed: {result.title}", StatusLevel.SUCCESS)

    def _process_page(self, sequence: int, url: str, dedup: bool) -> PageResult:
        session = self.session
        options = session.options

        session.status(f"Navigating to: {url}")
        self.navigator.navigate(self._page, url, options.page_timeout_ms)
        if options.wait_after_load_ms > 0:
            self._sleep(options.wait_after_load_ms / 1000)

        title = self.navigator.get_title(self._page) or "Untitled"
        links = self.navigator.extract_links(self._page, self._origin)

        if dedup:
            pattern = self.frontier.record_pattern(url)
            session.status(f"Pattern detected: {pattern}")

        if options.follow_links:
            admitted = self.frontier.admit_links(links, dedup)
            self.stats.record_admit_many(admitted)
            for admit in admitted:
                if admit.status == EnqueueStatus.SKIPPED_PATTERN:
                    session.status(f"Skipped (same pattern): {admit.url}", StatusLevel.WARNING)

        destination = self.storage.artifact_path(
            session.id,
            sequence,
            stem=self.capturer.stem,
            extension=self.capturer.extension,
        )
        verb = "Recording" if self.capturer.kind == CaptureMode.VIDEO else "Taking screenshot of"
        session.status(f"{verb}: {title}")

        started = time.monotonic()
        artifact = self.capturer.capture(
            self._page,
            destination,
            options,
            on_progress=self._report_capture_progress,
        )
        self.stats.record_capture(artifact, int((time.monotonic() - started) * 1000))

        meta = dict(artifact.metadata)
        meta["kind"] = artifact.kind.value
        meta["media_type"] = artifact.media_type
        if artifact.size_bytes is not None:
            meta["size_bytes"] = artifact.size_bytes

        return PageResult(
            sequence=sequence,
            url=url,
            title=title,
            links_found=len(links),
            artifact=self.storage.artifact_ref(artifact.path),
            artifact_meta=meta,
        )

    def _report_capture_progress(self, progress: int, frames: int) -> None:
        self.session.emit(EventKind.CAPTURE_PROGRESS, {"progress": progress, "frames": frames})

    def _finish(self, failure: BaseException | None) -> None:
        session = self.session
        try:
            self._close_and_report(failure)
        finally:
            if self.registry is not None:
                self.registry.remove(session.id)

    def _close_and_report(self, failure: BaseException | None) -> None:
        session = self.session

        if self._page is not None:
            try:
                self.navigator.close_page(self._page)
            except Exception:
                LOGGER.exception("Session %s: failed to close browser page", session.id)

        if failure is not None:
            final_state = SessionState.FAILED
        elif self._stop_reason == StopReason.CANCELLED:
            final_state = SessionState.CANCELLED
        else:
            final_state = SessionState.COMPLETED
        if not session.terminal:
            session.transition(final_state)

        self.stats.record_frontier_snapshot(self.frontier.snapshot())
        self.stats.finish()

        summary = self._summary(failure)
        try:
            self.storage.persist_summary(session.id, summary)
        except OSError as exc:
            LOGGER.error("Session %s: could not persist summary: %s", session.id, exc)
            session.status(f"Could not save summary: {exc}", StatusLevel.ERROR)

        session.emit(
            EventKind.COMPLETE,
            {
                "session_id": session.id,
                "state": session.state.value,
                "total_pages": len(session.results),
                "results": [result.to_json() for result in session.results],
            },
        )

    def _summary(self, failure: BaseException | None) -> dict[str, Any]:
        session = self.session
        dedup = session.options.smart_dedup
        frontier = self.frontier

        return {
            "session_id": session.id,
            "kind": session.kind,
            "start_url": session.start_url,
            "options": session.options.to_json(),
            "start_time": session.start_time,
            "end_time": session.end_time,
            "state": session.state.value,
            "stop_reason": self._stop_reason.value if self._stop_reason else None,
            "error": str(failure) if failure is not None else None,
            "pages_processed": len(session.results),
            "patterns_found": len(frontier.visited_patterns) if dedup else None,
            "skipped_duplicates": len(frontier.skipped) if dedup else None,
            "skipped_urls": json_ready(frontier.skipped) if dedup else None,
            "results": [result.to_json() for result in session.results],
            "stats": self.stats.to_json(),
        }


__all__ = ["CrawlOrchestrator"]
