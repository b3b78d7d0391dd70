from __future__ import annotations

from sitecapture.crawler.frontier import EnqueueStatus, Frontier, StopReason


def test_queue_is_fifo_and_canonical() -> None:
    frontier = Frontier()
    frontier.enqueue("https://example.com/a/")
    frontier.enqueue("https://example.com/b#top")

    assert frontier.dequeue_next() == "https://example.com/a"
    assert frontier.dequeue_next() == "https://example.com/b"
    assert frontier.dequeue_next() is None


def test_same_canonical_url_is_never_enqueued_twice() -> None:
    frontier = Frontier()

    assert frontier.enqueue("https://example.com/a").status == EnqueueStatus.ENQUEUED
    assert frontier.enqueue("https://example.com/a/").status == EnqueueStatus.SKIPPED_SEEN

    url = frontier.dequeue_next()
    frontier.mark_visited(url)

    assert frontier.enqueue("https://example.com/a#x").status == EnqueueStatus.SKIPPED_SEEN
    assert len(frontier) == 0
    assert not set(frontier.queue) & frontier.visited


def test_dedup_rejects_second_product_but_accepts_about() -> None:
    frontier = Frontier()
    frontier.mark_visited("https://example.com/product/1")
    frontier.record_pattern("https://example.com/product/1")

    results = frontier.admit_links(
        [
            "https://example.com/product/1",
            "https://example.com/product/2",
            "https://example.com/about",
        ],
        dedup_enabled=True,
    )

    assert [result.status for result in results] == [
        EnqueueStatus.SKIPPED_SEEN,
        EnqueueStatus.SKIPPED_PATTERN,
        EnqueueStatus.ENQUEUED,
    ]
    assert list(frontier.queue) == ["https://example.com/about"]
    assert [(skip.url, skip.pattern, skip.reason) for skip in frontier.skipped] == [
        ("https://example.com/product/2", "https://example.com/product/{item}", "duplicate_pattern"),
    ]


def test_admitted_links_do_not_record_their_pattern() -> None:
    frontier = Frontier()
    frontier.record_pattern("https://example.com")

    frontier.admit_link("https://example.com/product/1", dedup_enabled=True)
    result = frontier.admit_link("https://example.com/product/2", dedup_enabled=True)

    assert result.status == EnqueueStatus.ENQUEUED
    assert frontier.visited_patterns == {"https://example.com/"}


def test_without_dedup_every_new_link_is_enqueued() -> None:
    frontier = Frontier()
    frontier.record_pattern("https://example.com/product/1")

    results = frontier.admit_links(
        ["https://example.com/product/2", "https://example.com/product/3"],
        dedup_enabled=False,
    )

    assert all(result.accepted for result in results)
    assert frontier.skipped == []


def test_should_stop_reasons_in_priority_order() -> None:
    frontier = Frontier()
    assert frontier.should_stop(budget=5, cancelled=False) == StopReason.EXHAUSTED

    frontier.enqueue("https://example.com/a")
    assert frontier.should_stop(budget=5, cancelled=False) is None
    assert frontier.should_stop(budget=5, cancelled=True) == StopReason.CANCELLED

    frontier.mark_visited(frontier.dequeue_next())
    frontier.enqueue("https://example.com/b")
    assert frontier.should_stop(budget=1, cancelled=False) == StopReason.BUDGET


def test_progress_total_is_capped_by_budget() -> None:
    frontier = Frontier()
    for name in "abcdef":
        frontier.enqueue(f"https://example.com/{name}")
    frontier.mark_visited(frontier.dequeue_next())

    assert frontier.progress_total(budget=3) == 3
    assert frontier.progress_total(budget=50) == 6


def test_snapshot_counts() -> None:
    frontier = Frontier()
    frontier.enqueue("https://example.com/a")
    frontier.enqueue("https://example.com/a")

    snapshot = frontier.snapshot()

    assert snapshot["queue_size"] == 1
    assert snapshot["enqueued"] == 1
    assert snapshot["skipped_seen"] == 1
