"""CLI entrypoint for capture sessions and stored-session maintenance."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import threading
from typing import Any

from tqdm import tqdm

from sitecapture.crawler import (
    CrawlerError,
    CrawlerSettings,
    CrawlEvent,
    EventKind,
    FanoutEventSink,
    JsonlEventSink,
    LoggingEventSink,
    SessionManager,
    SessionState,
    load_config,
)
from sitecapture.crawler.session import SESSION_KIND_CRAWL, SESSION_KIND_VIDEO

_EXIT_CODES = {
    SessionState.COMPLETED: 0,
    SessionState.FAILED: 1,
    SessionState.CANCELLED: 130,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl a site breadth-first and capture each page as a screenshot or video.",
    )

    parser.add_argument("--url", type=str, default=None, help="Start URL (http/https).")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML settings file.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=None,
        help="Root output directory for sessions/archives/logs (overrides config).",
    )
    parser.add_argument(
        "--video",
        action="store_true",
        help="Record a single scrolling video of --url instead of crawling.",
    )

    parser.add_argument("--max_pages", type=int, default=None)
    parser.add_argument("--width", type=int, default=None, help="Viewport width in CSS px.")
    parser.add_argument("--height", type=int, default=None, help="Viewport height in CSS px.")
    parser.add_argument("--scroll_delay_ms", type=int, default=None)
    parser.add_argument("--page_timeout_ms", type=int, default=None)
    parser.add_argument("--wait_after_load_ms", type=int, default=None)
    parser.add_argument(
        "--smart_dedup",
        dest="smart_dedup",
        action="store_true",
        default=None,
        help="Skip links whose URL shape matches an already captured page.",
    )
    parser.add_argument(
        "--no_smart_dedup",
        dest="smart_dedup",
        action="store_false",
        help="Capture every distinct URL.",
    )

    parser.add_argument("--scroll_speed", type=int, default=None, help="Video scroll px per frame.")
    parser.add_argument("--frame_rate", type=int, default=None)
    parser.add_argument("--pause_at_top_ms", type=int, default=None)
    parser.add_argument("--pause_at_bottom_ms", type=int, default=None)

    parser.add_argument("--browser", type=str, choices=["auto", "chrome", "firefox"], default=None)
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window instead of running headless.",
    )
    parser.add_argument("--ffmpeg_path", type=str, default=None)

    parser.add_argument(
        "--events_jsonl",
        action="store_true",
        help="Also write every event to <session>/events.jsonl.",
    )
    parser.add_argument(
        "--no_progress",
        action="store_true",
        help="Disable the progress bar.",
    )

    parser.add_argument("--list_sessions", action="store_true", help="List stored sessions and exit.")
    parser.add_argument("--archive", type=str, default=None, metavar="SESSION_ID", help="Zip a stored session.")
    parser.add_argument("--delete", type=str, default=None, metavar="SESSION_ID", help="Delete a stored session.")

    parser.add_argument(
        "--print_summary_json",
        action="store_true",
        help="Print the full session summary JSON after the run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> CrawlerSettings:
    settings = load_config(args.config) if args.config is not None else CrawlerSettings()
    payload = settings.to_dict()

    if args.output_dir is not None:
        payload["output_dir"] = str(args.output_dir)
    if args.browser is not None:
        payload["browser"] = args.browser
    if args.headful:
        payload["headless"] = False
    if args.ffmpeg_path is not None:
        payload["ffmpeg_path"] = args.ffmpeg_path

    return CrawlerSettings.from_dict(payload)


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    for key in [
        "max_pages",
        "scroll_delay_ms",
        "page_timeout_ms",
        "wait_after_load_ms",
        "smart_dedup",
        "scroll_speed",
        "frame_rate",
        "pause_at_top_ms",
        "pause_at_bottom_ms",
    ]:
        value = getattr(args, key)
        if value is not None:
            overrides[key] = value

    if args.width is not None or args.height is not None:
        overrides["viewport"] = {
            "width": args.width if args.width is not None else 1920,
            "height": args.height if args.height is not None else 1080,
        }

    return overrides


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # WebDriver wire traffic is logged at DEBUG per command.
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class TqdmProgressSink:
    """Render page progress as a tqdm bar."""

    def __init__(self, *, disable: bool = False) -> None:
        self._bar = tqdm(total=None, desc="Capturing", unit="page", disable=disable)
        self._lock = threading.Lock()

    def emit(self, event: CrawlEvent) -> None:
        payload = event.payload
        with self._lock:
            if event.kind == EventKind.PROGRESS:
                self._bar.total = payload.get("total")
                self._bar.set_postfix_str(str(payload.get("url", "")), refresh=False)
                self._bar.refresh()
            elif event.kind in {EventKind.PAGE_RESULT, EventKind.PAGE_FAILED}:
                self._bar.update(1)
            elif event.kind == EventKind.COMPLETE:
                self._bar.close()


def print_sessions(sessions: list[dict[str, Any]]) -> None:
    if not sessions:
        print("No stored sessions.")
        return

    for entry in sessions:
        print(
            f"{entry.get('session_id')}\t{entry.get('state', '-')}\t"
            f"pages={entry.get('pages_processed', '-')}\t{entry.get('start_url', '')}"
        )


def print_summary(summary: dict[str, Any], paths: dict[str, Any], *, print_summary_json: bool) -> None:
    stats = summary.get("stats", {})

    print("\n=== Capture Complete ===")
    print(f"session: {summary.get('session_id')}")
    print(f"state: {summary.get('state')}")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"pages_processed: {summary.get('pages_processed')}")
    if summary.get("patterns_found") is not None:
        print(f"patterns_found: {summary.get('patterns_found')}")
        print(f"skipped_duplicates: {summary.get('skipped_duplicates')}")

    print("\n--- Core Stats ---")
    for key in ["pages_ok", "pages_failed", "links_found_total", "duration_seconds"]:
        if key in stats:
            print(f"{key}: {stats[key]}")

    if print_summary_json:
        print("\n--- Full Summary JSON ---")
        print(json.dumps(summary, indent=2, sort_keys=True))


def run_maintenance(args: argparse.Namespace, manager: SessionManager) -> int:
    try:
        if args.list_sessions:
            print_sessions(manager.list_sessions())
        if args.archive:
            path = manager.build_archive(args.archive)
            print(f"archive: {path}")
        if args.delete:
            manager.delete_session(args.delete)
            print(f"deleted: {args.delete}")
    except (CrawlerError, ValueError, OSError) as exc:
        logging.error("%s", exc)
        return 1
    return 0


def run_capture(args: argparse.Namespace, manager: SessionManager) -> int:
    kind = SESSION_KIND_VIDEO if args.video else SESSION_KIND_CRAWL
    try:
        session = manager.create_session(args.url, build_overrides(args), kind=kind)
    except ValueError as exc:
        logging.error("Invalid session request: %s", exc)
        return 2

    sinks = [LoggingEventSink(), TqdmProgressSink(disable=args.no_progress)]
    if args.events_jsonl:
        sinks.append(JsonlEventSink(manager.storage.events_path(session.id)))
    session.sink = FanoutEventSink(sinks)

    logging.info(
        "Starting %s session %s: url=%s, output_dir=%s",
        kind,
        session.id,
        session.start_url,
        manager.storage.output_dir,
    )

    manager.start_session(session)
    try:
        while not manager.join(session.id, timeout=0.5):
            pass
    except KeyboardInterrupt:
        logging.error("Interrupted by user; finishing current page")
        manager.cancel(session.id)
        manager.join(session.id)

    try:
        summary = manager.load_summary(session.id)
    except CrawlerError as exc:
        logging.error("No summary written for %s: %s", session.id, exc)
        return 1

    print_summary(summary, manager.storage.paths, print_summary_json=args.print_summary_json)
    return _EXIT_CODES.get(session.state, 1)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = build_settings(args)
    except (OSError, ValueError) as exc:
        print(f"Failed to build config: {exc}", file=sys.stderr)
        return 2

    setup_logging(Path(settings.output_dir), verbose=args.verbose)
    manager = SessionManager(settings)

    if args.list_sessions or args.archive or args.delete:
        return run_maintenance(args, manager)

    if not args.url:
        logging.error("No URL provided. Use --url or a maintenance flag.")
        return 2

    return run_capture(args, manager)


if __name__ == "__main__":
    raise SystemExit(main())
