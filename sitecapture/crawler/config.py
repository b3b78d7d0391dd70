"""Typed crawl options and process settings with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_BROWSER,
    DEFAULT_FRAME_RATE,
    DEFAULT_HEADLESS,
    DEFAULT_MAX_PAGES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_TIMEOUT_MS,
    DEFAULT_PAUSE_AT_BOTTOM_MS,
    DEFAULT_PAUSE_AT_TOP_MS,
    DEFAULT_SCROLL_DELAY_MS,
    DEFAULT_SCROLL_SPEED_PX,
    DEFAULT_SMART_DEDUP,
    DEFAULT_USER_AGENT,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    DEFAULT_WAIT_AFTER_LOAD_MS,
    JSON_INDENT,
    SUPPORTED_BROWSERS,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import CaptureMode, JSONDict, Viewport


# Keys sent by the browser observer UI.
_CAMEL_CASE_ALIASES = {
    "maxPages": "max_pages",
    "scrollDelay": "scroll_delay_ms",
    "pageTimeout": "page_timeout_ms",
    "waitAfterLoad": "wait_after_load_ms",
    "smartDedup": "smart_dedup",
    "captureMode": "capture_mode",
    "scrollSpeed": "scroll_speed",
    "frameRate": "frame_rate",
    "pauseAtTop": "pause_at_top_ms",
    "pauseAtBottom": "pause_at_bottom_ms",
    "followLinks": "follow_links",
}


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _to_capture_mode(value: Any) -> CaptureMode:
    if isinstance(value, CaptureMode):
        return value
    if isinstance(value, str):
        try:
            return CaptureMode(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid capture mode: {value!r}") from exc
    raise ValueError(f"Invalid capture mode: {value!r}")


def _to_viewport(value: Any) -> Viewport:
    if isinstance(value, Viewport):
        return value
    if isinstance(value, Mapping):
        return Viewport(
            width=_as_int(value.get("width", DEFAULT_VIEWPORT_WIDTH), "viewport.width"),
            height=_as_int(value.get("height", DEFAULT_VIEWPORT_HEIGHT), "viewport.height"),
        )
    raise ValueError(f"Invalid viewport: {value!r}")


@dataclass(frozen=True, slots=True)
class CrawlOptions:
    """Per-session option snapshot; immutable once a session is created."""

    max_pages: int = DEFAULT_MAX_PAGES
    viewport: Viewport = field(default_factory=Viewport)
    scroll_delay_ms: int = DEFAULT_SCROLL_DELAY_MS
    page_timeout_ms: int = DEFAULT_PAGE_TIMEOUT_MS
    wait_after_load_ms: int = DEFAULT_WAIT_AFTER_LOAD_MS
    smart_dedup: bool = DEFAULT_SMART_DEDUP
    capture_mode: CaptureMode = CaptureMode.SCREENSHOT

    scroll_speed: int = DEFAULT_SCROLL_SPEED_PX
    frame_rate: int = DEFAULT_FRAME_RATE
    pause_at_top_ms: int = DEFAULT_PAUSE_AT_TOP_MS
    pause_at_bottom_ms: int = DEFAULT_PAUSE_AT_BOTTOM_MS

    follow_links: bool = True

    def __post_init__(self) -> None:
        if self.max_pages <= 0:
            raise ValueError("max_pages must be > 0")
        if self.viewport.width <= 0 or self.viewport.height <= 0:
            raise ValueError("viewport dimensions must be > 0")
        if self.scroll_delay_ms < 0:
            raise ValueError("scroll_delay_ms must be >= 0")
        if self.page_timeout_ms <= 0:
            raise ValueError("page_timeout_ms must be > 0")
        if self.wait_after_load_ms < 0:
            raise ValueError("wait_after_load_ms must be >= 0")
        if self.scroll_speed <= 0:
            raise ValueError("scroll_speed must be > 0")
        if self.frame_rate <= 0:
            raise ValueError("frame_rate must be > 0")
        if self.pause_at_top_ms < 0 or self.pause_at_bottom_ms < 0:
            raise ValueError("pause durations must be >= 0")

    def merged(self, overrides: Mapping[str, Any] | None) -> "CrawlOptions":
        """Return a copy with `overrides` (snake_case or camelCase) applied."""

        if not overrides:
            return self
        return replace(self, **_coerce_option_fields(overrides))

    def to_json(self) -> JSONDict:
        return {
            "max_pages": self.max_pages,
            "viewport": self.viewport.to_json(),
            "scroll_delay_ms": self.scroll_delay_ms,
            "page_timeout_ms": self.page_timeout_ms,
            "wait_after_load_ms": self.wait_after_load_ms,
            "smart_dedup": self.smart_dedup,
            "capture_mode": self.capture_mode.value,
            "scroll_speed": self.scroll_speed,
            "frame_rate": self.frame_rate,
            "pause_at_top_ms": self.pause_at_top_ms,
            "pause_at_bottom_ms": self.pause_at_bottom_ms,
            "follow_links": self.follow_links,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "CrawlOptions":
        return cls(**_coerce_option_fields(payload or {}))


def _coerce_option_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for raw_key, value in payload.items():
        key = _CAMEL_CASE_ALIASES.get(str(raw_key), str(raw_key))
        if value is None:
            continue

        if key == "viewport":
            fields[key] = _to_viewport(value)
        elif key == "capture_mode":
            fields[key] = _to_capture_mode(value)
        elif key in {"smart_dedup", "follow_links"}:
            fields[key] = _as_bool(value, key)
        elif key in {
            "max_pages",
            "scroll_delay_ms",
            "page_timeout_ms",
            "wait_after_load_ms",
            "scroll_speed",
            "frame_rate",
            "pause_at_top_ms",
            "pause_at_bottom_ms",
        }:
            fields[key] = _as_int(value, key)
        else:
            raise ValueError(f"Unknown crawl option: {raw_key!r}")
    return fields


@dataclass(slots=True)
class CrawlerSettings:
    """Process-wide settings shared by every session a manager starts."""

    output_dir: str = DEFAULT_OUTPUT_DIR
    browser: str = DEFAULT_BROWSER
    headless: bool = DEFAULT_HEADLESS
    user_agent: str | None = DEFAULT_USER_AGENT
    ffmpeg_path: str | None = None
    collection_keywords: list[str] | None = None
    defaults: CrawlOptions = field(default_factory=CrawlOptions)

    def __post_init__(self) -> None:
        self.browser = self.browser.strip().lower()
        if self.browser not in SUPPORTED_BROWSERS:
            raise ValueError(f"browser must be one of {SUPPORTED_BROWSERS}, got {self.browser!r}")
        if not str(self.output_dir).strip():
            raise ValueError("output_dir cannot be empty")

    def to_dict(self) -> JSONDict:
        """Serialize settings for manifests and reproducibility."""

        return {
            "output_dir": str(self.output_dir),
            "browser": self.browser,
            "headless": self.headless,
            "user_agent": self.user_agent,
            "ffmpeg_path": self.ffmpeg_path,
            "collection_keywords": self.collection_keywords,
            "defaults": self.defaults.to_json(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlerSettings":
        """Build settings from a parsed dictionary."""

        keywords = payload.get("collection_keywords")
        if keywords is not None and not isinstance(keywords, (list, tuple)):
            raise ValueError("collection_keywords must be a list of strings")

        return cls(
            output_dir=str(payload.get("output_dir", DEFAULT_OUTPUT_DIR)),
            browser=str(payload.get("browser", DEFAULT_BROWSER)),
            headless=_as_bool(payload.get("headless", DEFAULT_HEADLESS), "headless"),
            user_agent=(
                None
                if payload.get("user_agent", DEFAULT_USER_AGENT) is None
                else str(payload.get("user_agent", DEFAULT_USER_AGENT))
            ),
            ffmpeg_path=None if payload.get("ffmpeg_path") is None else str(payload["ffmpeg_path"]),
            collection_keywords=None if keywords is None else [str(word) for word in keywords],
            defaults=CrawlOptions.from_dict(payload.get("defaults") or {}),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlerSettings:
    """Load CrawlerSettings from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlerSettings.from_dict(payload)


def save_config(settings: CrawlerSettings, path: str | Path) -> None:
    """Save CrawlerSettings as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = settings.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlOptions",
    "CrawlerSettings",
    "load_config",
    "save_config",
]
