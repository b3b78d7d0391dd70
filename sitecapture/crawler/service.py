"""Session manager: start crawl/video sessions in worker threads and cancel them."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Mapping

from .capture import Capturer, build_capturer
from .config import CrawlerSettings, CrawlOptions
from .constants import DEFAULT_VIDEO_WAIT_AFTER_LOAD_MS
from .events import EventSink, StatusLevel
from .navigator import Navigator, SeleniumNavigator
from .orchestrator import CrawlOrchestrator
from .patterns import PatternClassifier
from .registry import SessionRegistry
from .session import SESSION_KIND_CRAWL, SESSION_KIND_VIDEO, Session
from .storage import Storage
from .types import CaptureMode, SessionState
from .url import is_http_url

LOGGER = logging.getLogger(__name__)

OptionsInput = CrawlOptions | Mapping[str, Any] | None


class SessionManager:
    """Entry point for running sessions.

    Each started session gets its own worker thread, browser page, and frontier.
    The registry is the only state shared between threads.
    """

    def __init__(
        self,
        settings: CrawlerSettings | None = None,
        *,
        storage: Storage | None = None,
        registry: SessionRegistry | None = None,
        navigator_factory: Callable[[], Navigator] | None = None,
        capturer_factory: Callable[[CaptureMode], Capturer] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or CrawlerSettings()
        self.storage = storage or Storage(self.settings.output_dir)
        self.registry = registry or SessionRegistry()
        self.classifier = PatternClassifier(self.settings.collection_keywords)

        self._navigator_factory = navigator_factory or (lambda: SeleniumNavigator(self.settings))
        self._capturer_factory = capturer_factory or (
            lambda mode: build_capturer(mode, ffmpeg_path=self.settings.ffmpeg_path)
        )
        self._sleep = sleep

        self._threads: dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

    def resolve_options(self, options: OptionsInput = None, *, kind: str = SESSION_KIND_CRAWL) -> CrawlOptions:
        """Merge per-session overrides over the configured defaults."""

        if kind == SESSION_KIND_VIDEO:
            if isinstance(options, CrawlOptions):
                base = options
            else:
                base = replace(
                    self.settings.defaults,
                    wait_after_load_ms=DEFAULT_VIDEO_WAIT_AFTER_LOAD_MS,
                ).merged(options)
            # A video session records exactly the requested page.
            return replace(base, max_pages=1, follow_links=False, capture_mode=CaptureMode.VIDEO)

        if isinstance(options, CrawlOptions):
            return options
        return self.settings.defaults.merged(options)

    def create_session(
        self,
        url: str,
        options: OptionsInput = None,
        *,
        sink: EventSink | None = None,
        kind: str = SESSION_KIND_CRAWL,
    ) -> Session:
        """Validate input, snapshot options, and register a new session."""

        url = (url or "").strip()
        if not url:
            raise ValueError("URL is required")
        if not is_http_url(url):
            raise ValueError(f"Unsupported URL (http/https only): {url}")

        session = Session.create(url, self.resolve_options(options, kind=kind), sink=sink, kind=kind)
        self.registry.add(session)
        LOGGER.info("Created %s session %s for %s", kind, session.id, url)
        return session

    def run_session(self, session: Session) -> SessionState:
        """Run a registered session on the calling thread until it ends."""

        orchestrator = CrawlOrchestrator(
            session,
            self._navigator_factory(),
            self._capturer_factory(session.options.capture_mode),
            self.storage,
            classifier=self.classifier,
            registry=self.registry,
            sleep=self._sleep,
        )
        return orchestrator.run()

    def start_crawl(self, url: str, options: OptionsInput = None, *, sink: EventSink | None = None) -> str:
        """Start a breadth-first crawl in the background; returns the session id."""

        session = self.create_session(url, options, sink=sink, kind=SESSION_KIND_CRAWL)
        self.start_session(session)
        return session.id

    def start_video(self, url: str, options: OptionsInput = None, *, sink: EventSink | None = None) -> str:
        """Record one scrolling video of `url` in the background; returns the session id."""

        session = self.create_session(url, options, sink=sink, kind=SESSION_KIND_VIDEO)
        self.start_session(session)
        return session.id

    def start_session(self, session: Session) -> None:
        """Run an already created session on its own worker thread."""

        thread = threading.Thread(
            target=self.run_session,
            args=(session,),
            name=f"capture-{session.id}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads[session.id] = thread
        thread.start()

    def cancel(self, session_id: str) -> bool:
        """Request cooperative cancellation; unknown or finished ids are ignored."""

        session = self.registry.get(session_id)
        if session is None or not session.cancel():
            LOGGER.debug("Cancel ignored for inactive session %s", session_id)
            return False

        LOGGER.info("Cancellation requested for session %s", session_id)
        session.status("Crawl cancelled by user", StatusLevel.WARNING)
        return True

    def join(self, session_id: str, timeout: float | None = None) -> bool:
        """Wait for a background session; returns True once its thread has exited."""

        with self._threads_lock:
            thread = self._threads.get(session_id)
        if thread is None:
            return True

        thread.join(timeout)
        if thread.is_alive():
            return False

        with self._threads_lock:
            self._threads.pop(session_id, None)
        return True

    def active_sessions(self) -> list[str]:
        return self.registry.ids()

    def list_sessions(self) -> list[dict[str, Any]]:
        return self.storage.list_sessions()

    def load_summary(self, session_id: str) -> dict[str, Any]:
        return self.storage.load_summary(session_id)

    def delete_session(self, session_id: str) -> None:
        if session_id in self.registry:
            raise ValueError(f"Session {session_id} is still running; cancel it first")
        self.storage.delete_session(session_id)

    def build_archive(self, session_id: str, destination: str | Path | None = None) -> Path:
        return self.storage.build_archive(session_id, destination)


__all__ = ["OptionsInput", "SessionManager"]
