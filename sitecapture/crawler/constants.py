"""Default values shared by config, CLI, and collaborators."""

from __future__ import annotations

DEFAULT_MAX_PAGES = 50
DEFAULT_VIEWPORT_WIDTH = 1920
DEFAULT_VIEWPORT_HEIGHT = 1080
DEFAULT_SCROLL_DELAY_MS = 100
DEFAULT_PAGE_TIMEOUT_MS = 30_000
DEFAULT_WAIT_AFTER_LOAD_MS = 1_000
DEFAULT_VIDEO_WAIT_AFTER_LOAD_MS = 2_000
DEFAULT_SMART_DEDUP = False

DEFAULT_SCROLL_SPEED_PX = 50
DEFAULT_FRAME_RATE = 30
DEFAULT_PAUSE_AT_TOP_MS = 1_000
DEFAULT_PAUSE_AT_BOTTOM_MS = 1_000

# Screenshot pre-scroll step used to trigger lazy-loaded content.
LAZY_LOAD_SCROLL_STEP_PX = 300
FINAL_RENDER_WAIT_SECONDS = 0.5
VIDEO_PROGRESS_EVERY_FRAMES = 20

DEFAULT_OUTPUT_DIR = "captures"
DEFAULT_BROWSER = "auto"
SUPPORTED_BROWSERS = ("auto", "chrome", "firefox")
DEFAULT_HEADLESS = True
DEFAULT_USER_AGENT = "sitecapture/0.1 (+https://example.invalid/sitecapture)"

SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
JSON_INDENT = 2

SUMMARY_FILENAME = "summary.json"
EVENTS_FILENAME = "events.jsonl"
ARCHIVE_SUFFIXES = (".png", ".webm", ".mp4")

__all__ = [name for name in dir() if name.isupper()]
