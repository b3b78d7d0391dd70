from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest

from sitecapture.crawler import (
    ArtifactDescriptor,
    CaptureError,
    CaptureMode,
    CollectingEventSink,
    CrawlOptions,
    NavigationError,
    Session,
    SessionRegistry,
    Storage,
    Viewport,
    canonicalize_url,
)


@dataclass
class FakePage:
    viewport: Viewport
    current_url: str | None = None
    closed: bool = False


@dataclass
class FakeNavigator:
    """In-memory site: `pages` maps canonical URL -> {"title": ..., "links": [...]}."""

    pages: dict[str, dict[str, Any]]
    fail_urls: set[str] = field(default_factory=set)
    on_navigate: Callable[[str], None] | None = None
    setup_error: Exception | None = None

    navigated: list[str] = field(default_factory=list)
    opened: list[FakePage] = field(default_factory=list)

    def open_page(self, viewport: Viewport) -> FakePage:
        if self.setup_error is not None:
            raise self.setup_error
        page = FakePage(viewport=viewport)
        self.opened.append(page)
        return page

    def navigate(self, page: FakePage, url: str, timeout_ms: int) -> None:
        self.navigated.append(url)
        if self.on_navigate is not None:
            self.on_navigate(url)
        canonical = canonicalize_url(url)
        if canonical in self.fail_urls or canonical not in self.pages:
            raise NavigationError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        page.current_url = canonical

    def get_title(self, page: FakePage) -> str:
        return self.pages[page.current_url].get("title", "")

    def extract_links(self, page: FakePage, base_origin: str) -> list[str]:
        return [canonicalize_url(link) for link in self.pages[page.current_url].get("links", [])]

    def close_page(self, page: FakePage) -> None:
        page.closed = True


@dataclass
class FakeCapturer:
    extension: str = ".png"
    kind: CaptureMode = CaptureMode.SCREENSHOT
    stem: str = "page"
    fail_urls: set[str] = field(default_factory=set)
    captured: list[Path] = field(default_factory=list)

    def capture(self, page: FakePage, destination: Path, options: CrawlOptions, on_progress=None) -> ArtifactDescriptor:
        if page.current_url in self.fail_urls:
            raise CaptureError(f"Screenshot failed for {page.current_url}")
        destination.write_bytes(b"\x89PNG fake")
        self.captured.append(destination)
        if on_progress is not None:
            on_progress(100, 1)
        return ArtifactDescriptor(
            path=str(destination),
            kind=self.kind,
            media_type="image/png",
            size_bytes=destination.stat().st_size,
        )


def make_site(graph: dict[str, list[str]], titles: dict[str, str] | None = None) -> dict[str, dict[str, Any]]:
    titles = titles or {}
    return {
        canonicalize_url(url): {"title": titles.get(url, f"Title of {url}"), "links": links}
        for url, links in graph.items()
    }


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    return Storage(tmp_path / "captures")


@pytest.fixture
def sink() -> CollectingEventSink:
    return CollectingEventSink()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def make_session(sink: CollectingEventSink, registry: SessionRegistry) -> Callable[..., Session]:
    def _make(url: str = "https://example.com", **overrides: Any) -> Session:
        options = CrawlOptions.from_dict({"wait_after_load_ms": 0, **overrides})
        session = Session.create(url, options, sink=sink)
        registry.add(session)
        return session

    return _make
