from __future__ import annotations

import json

from sitecapture.crawler import (
    CrawlOptions,
    CrawlOrchestrator,
    EventKind,
    Session,
    SessionState,
    SetupError,
    StatusLevel,
)

from conftest import FakeCapturer, FakeNavigator, make_site

ROOT = "https://example.com"
A = "https://example.com/a"
B = "https://example.com/b"
C = "https://example.com/c"


def _run(session, navigator, storage, registry, capturer=None):
    orchestrator = CrawlOrchestrator(
        session,
        navigator,
        capturer or FakeCapturer(),
        storage,
        registry=registry,
        sleep=lambda _seconds: None,
    )
    state = orchestrator.run()
    return orchestrator, state


def test_breadth_first_order_stops_at_budget(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A, B], A: [B, ROOT, C], B: [C], C: []}))
    session = make_session(ROOT, max_pages=3)

    orchestrator, state = _run(session, navigator, storage, registry)

    assert state == SessionState.COMPLETED
    assert [result.url for result in session.results] == [ROOT, A, B]
    assert [result.sequence for result in session.results] == [1, 2, 3]
    assert len(orchestrator.frontier.visited) == 3
    assert list(orchestrator.frontier.queue) == [C]
    assert orchestrator.frontier.should_stop(3, False).value == "budget"


def test_event_order_and_single_terminal_event(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A], A: []}))
    session = make_session(ROOT)

    _run(session, navigator, storage, registry)

    kinds = [kind for kind in sink.kinds() if kind != EventKind.STATUS]
    assert kinds == [
        EventKind.SESSION_STARTED,
        EventKind.PROGRESS,
        EventKind.CAPTURE_PROGRESS,
        EventKind.PAGE_RESULT,
        EventKind.PROGRESS,
        EventKind.CAPTURE_PROGRESS,
        EventKind.PAGE_RESULT,
        EventKind.COMPLETE,
    ]
    assert sink.events[-1].kind == EventKind.COMPLETE

    complete = sink.events[-1].payload
    assert complete["state"] == "completed"
    assert complete["total_pages"] == 2
    assert [result["url"] for result in complete["results"]] == [ROOT, A]

    progress = [event.payload for event in sink.of_kind(EventKind.PROGRESS)]
    assert progress[0] == {"current": 1, "total": 1, "url": ROOT}
    assert progress[1] == {"current": 2, "total": 2, "url": A}


def test_navigation_failure_is_recorded_and_crawl_continues(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A, B], A: [], B: []}), fail_urls={A})
    session = make_session(ROOT)

    _, state = _run(session, navigator, storage, registry)

    assert state == SessionState.COMPLETED
    assert [result.url for result in session.results] == [ROOT, A, B]

    failed = session.results[1]
    assert failed.sequence == 2
    assert failed.title == "Error"
    assert "ERR_NAME_NOT_RESOLVED" in failed.error
    assert failed.links_found is None

    failures = sink.of_kind(EventKind.PAGE_FAILED)
    assert len(failures) == 1
    assert failures[0].payload["result"]["url"] == A


def test_capture_failure_is_a_page_failure(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A], A: []}))
    session = make_session(ROOT)

    _run(session, navigator, storage, registry, capturer=FakeCapturer(fail_urls={ROOT}))

    assert session.results[0].error == f"Screenshot failed for {ROOT}"
    assert session.results[1].ok


def test_cancel_mid_crawl_ends_cancelled_without_further_progress(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A, B, C], A: [], B: [], C: []}))
    session = make_session(ROOT)

    def cancel_on_a(url: str) -> None:
        if url == A:
            assert registry.cancel(session.id) is True

    navigator.on_navigate = cancel_on_a

    _, state = _run(session, navigator, storage, registry)

    assert state == SessionState.CANCELLED
    assert [result.url for result in session.results] == [ROOT, A]

    kinds = sink.kinds()
    assert kinds.count(EventKind.COMPLETE) == 1
    assert kinds[-1] == EventKind.COMPLETE
    assert kinds.count(EventKind.PROGRESS) == 2
    assert session.id not in registry
    assert registry.cancel(session.id) is False


def test_cancel_before_first_page(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator(make_site({ROOT: []}))
    session = make_session(ROOT)
    session.cancel()

    _, state = _run(session, navigator, storage, registry)

    assert state == SessionState.CANCELLED
    assert session.results == []
    assert EventKind.PROGRESS not in sink.kinds()
    assert sink.kinds().count(EventKind.COMPLETE) == 1


def test_smart_dedup_skips_sibling_shapes(make_session, storage, registry, sink) -> None:
    start = "https://example.com/product/1"
    product_2 = "https://example.com/product/2"
    about = "https://example.com/about"
    navigator = FakeNavigator(make_site({start: [start, product_2, about], product_2: [], about: []}))
    session = make_session(start, smart_dedup=True)

    orchestrator, _ = _run(session, navigator, storage, registry)

    assert [result.url for result in session.results] == [start, about]
    assert [skip.url for skip in orchestrator.frontier.skipped] == [product_2]

    warnings = [
        event.payload["message"]
        for event in sink.of_kind(EventKind.STATUS)
        if event.payload["level"] == StatusLevel.WARNING.value
    ]
    assert warnings == [f"Skipped (same pattern): {product_2}"]

    summary = json.loads(storage.summary_path(session.id).read_text(encoding="utf-8"))
    assert summary["patterns_found"] == 2
    assert summary["skipped_duplicates"] == 1
    assert summary["skipped_urls"][0]["pattern"] == "https://example.com/product/{item}"


def test_summary_without_dedup(make_session, storage, registry) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A], A: []}, titles={A: ""}))
    session = make_session(ROOT)

    _run(session, navigator, storage, registry)

    summary = storage.load_summary(session.id)
    assert summary["state"] == "completed"
    assert summary["start_url"] == ROOT
    assert summary["pages_processed"] == 2
    assert summary["patterns_found"] is None
    assert summary["skipped_urls"] is None
    assert summary["end_time"] is not None
    assert summary["results"][1]["title"] == "Untitled"
    assert summary["results"][0]["artifact"] == f"sessions/{session.id}/page_1.png"
    assert summary["stats"]["pages_ok"] == 2


def test_follow_links_off_visits_only_start_url(make_session, storage, registry) -> None:
    navigator = FakeNavigator(make_site({ROOT: [A, B], A: [], B: []}))
    session = make_session(ROOT, follow_links=False)

    _run(session, navigator, storage, registry)

    assert [result.url for result in session.results] == [ROOT]
    assert session.results[0].links_found == 2


def test_browser_setup_failure_ends_failed(make_session, storage, registry, sink) -> None:
    navigator = FakeNavigator({}, setup_error=SetupError("no driver"))
    session = make_session(ROOT)

    _, state = _run(session, navigator, storage, registry)

    assert state == SessionState.FAILED
    assert session.end_time is not None
    assert sink.kinds().count(EventKind.COMPLETE) == 1
    assert sink.events[-1].payload["total_pages"] == 0
    assert storage.load_summary(session.id)["error"] == "no driver"


def test_browser_page_is_closed(make_session, storage, registry) -> None:
    navigator = FakeNavigator(make_site({ROOT: []}))
    session = make_session(ROOT)

    _run(session, navigator, storage, registry)

    assert navigator.opened and all(page.closed for page in navigator.opened)


class _DisconnectingSink:
    """Raises once the crawl reaches its terminal event."""

    def __init__(self) -> None:
        self.kinds: list[EventKind] = []

    def emit(self, event) -> None:
        self.kinds.append(event.kind)
        if event.kind == EventKind.COMPLETE:
            raise OSError("observer disconnected")


def test_failing_observer_does_not_break_cleanup(storage, registry) -> None:
    sink = _DisconnectingSink()
    session = Session.create(ROOT, CrawlOptions(wait_after_load_ms=0), sink=sink)
    registry.add(session)
    navigator = FakeNavigator(make_site({ROOT: [A], A: []}))

    _, state = _run(session, navigator, storage, registry)

    assert state == SessionState.COMPLETED
    assert sink.kinds.count(EventKind.COMPLETE) == 1
    assert session.id not in registry
    assert len(registry) == 0
    assert storage.load_summary(session.id)["state"] == "completed"


def test_registry_entry_removed_even_if_summary_cannot_be_written(make_session, storage, registry, monkeypatch) -> None:
    navigator = FakeNavigator(make_site({ROOT: []}))
    session = make_session(ROOT)

    def broken_persist(session_id, summary):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "persist_summary", broken_persist)

    _, state = _run(session, navigator, storage, registry)

    assert state == SessionState.COMPLETED
    assert session.id not in registry


def test_loop_ends_exhausted_when_queue_runs_dry(make_session, storage, registry) -> None:
    navigator = FakeNavigator(make_site({ROOT: []}))
    session = make_session(ROOT)

    orchestrator, _ = _run(session, navigator, storage, registry)

    assert orchestrator.frontier.should_stop(session.budget, False).value == "exhausted"
    assert storage.load_summary(session.id)["stop_reason"] == "exhausted"
