"""Capture collaborators: full-page screenshots and scrolling videos.

Both capturers work on the `PageHandle` opened by the navigator and write one
artifact to the destination path chosen by storage. Failures surface as
`CaptureError` so the crawl loop records them as failed pages.
"""

from __future__ import annotations

import base64
import logging
import math
import shutil
import struct
import subprocess
import time
from pathlib import Path
from typing import Any, Callable, Protocol

from selenium.common.exceptions import WebDriverException

from .config import CrawlOptions
from .constants import (
    FINAL_RENDER_WAIT_SECONDS,
    LAZY_LOAD_SCROLL_STEP_PX,
    VIDEO_PROGRESS_EVERY_FRAMES,
)
from .errors import CaptureError
from .types import ArtifactDescriptor, CaptureMode

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class Capturer(Protocol):
    """Turns the currently loaded page into one artifact file."""

    extension: str
    kind: CaptureMode
    stem: str

    def capture(
        self,
        page: Any,
        destination: Path,
        options: CrawlOptions,
        on_progress: ProgressCallback | None = None,
    ) -> ArtifactDescriptor:
        ...


def png_dimensions(data: bytes) -> tuple[int, int] | None:
    """Read width/height from a PNG IHDR chunk."""

    if len(data) < 24 or not data.startswith(_PNG_SIGNATURE):
        return None
    width, height = struct.unpack(">II", data[16:24])
    return int(width), int(height)


def _scroll_metrics(driver: Any) -> dict[str, int]:
    metrics = driver.execute_script(
        "return {"
        "scrollHeight: document.body ? document.body.scrollHeight : 0,"
        "clientHeight: window.innerHeight"
        "};"
    ) or {}
    return {
        "scroll_height": int(metrics.get("scrollHeight") or 0),
        "client_height": int(metrics.get("clientHeight") or 0),
    }


class ScreenshotCapturer:
    """Scroll through the page to trigger lazy loading, then grab a full-page PNG."""

    extension = ".png"
    kind = CaptureMode.SCREENSHOT
    stem = "page"

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    def capture(
        self,
        page: Any,
        destination: Path,
        options: CrawlOptions,
        on_progress: ProgressCallback | None = None,
    ) -> ArtifactDescriptor:
        driver = page.driver
        destination = Path(destination)
        try:
            self._trigger_lazy_loading(driver, options.scroll_delay_ms)
            self._sleep(FINAL_RENDER_WAIT_SECONDS)
            png = self._full_page_png(driver)
        except WebDriverException as exc:
            raise CaptureError(f"Screenshot failed: {getattr(exc, 'msg', None) or exc}") from exc

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(png)
        except OSError as exc:
            raise CaptureError(f"Could not write screenshot {destination}: {exc}") from exc

        metadata: dict[str, Any] = {}
        dims = png_dimensions(png)
        if dims is not None:
            metadata["width"], metadata["height"] = dims
        if on_progress is not None:
            on_progress(100, 1)

        return ArtifactDescriptor(
            path=str(destination),
            kind=self.kind,
            media_type="image/png",
            size_bytes=len(png),
            metadata=metadata,
        )

    def _trigger_lazy_loading(self, driver: Any, scroll_delay_ms: int) -> None:
        scrolled = 0
        while True:
            scroll_height = _scroll_metrics(driver)["scroll_height"]
            driver.execute_script("window.scrollBy(0, arguments[0]);", LAZY_LOAD_SCROLL_STEP_PX)
            scrolled += LAZY_LOAD_SCROLL_STEP_PX
            self._sleep(scroll_delay_ms / 1000)
            if scrolled >= scroll_height:
                break
        driver.execute_script("window.scrollTo(0, 0);")

    @staticmethod
    def _full_page_png(driver: Any) -> bytes:
        # Firefox exposes a native full-page screenshot; Chrome needs CDP.
        if hasattr(driver, "get_full_page_screenshot_as_png"):
            return driver.get_full_page_screenshot_as_png()

        if hasattr(driver, "execute_cdp_cmd"):
            metrics = driver.execute_cdp_cmd("Page.getLayoutMetrics", {})
            size = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
            width = math.ceil(float(size.get("width") or 0))
            height = math.ceil(float(size.get("height") or 0))
            params: dict[str, Any] = {"format": "png", "captureBeyondViewport": True}
            if width > 0 and height > 0:
                params["clip"] = {"x": 0, "y": 0, "width": width, "height": height, "scale": 1}
            result = driver.execute_cdp_cmd("Page.captureScreenshot", params)
            return base64.b64decode(result["data"])

        return driver.get_screenshot_as_png()


class VideoCapturer:
    """Record a top-to-bottom scroll of the page as frames and encode them with ffmpeg.

    Frame plan for a page with `total_scroll = scrollHeight - innerHeight`:

    - `ceil(pause_at_top_ms / 1000 * frame_rate)` still frames at the top,
    - `ceil(total_scroll / scroll_speed) + 1` frames stepping `scroll_speed` px,
    - `ceil(pause_at_bottom_ms / 1000 * frame_rate)` still frames at the bottom.

    VP9 WebM is tried first; if ffmpeg rejects it, H.264 MP4 is written instead.
    """

    extension = ".webm"
    kind = CaptureMode.VIDEO
    stem = "video"

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.ffmpeg_path = ffmpeg_path or shutil.which("ffmpeg") or "ffmpeg"
        self._sleep = sleep
        self._run = runner

    def capture(
        self,
        page: Any,
        destination: Path,
        options: CrawlOptions,
        on_progress: ProgressCallback | None = None,
    ) -> ArtifactDescriptor:
        destination = Path(destination)
        frames_dir = destination.with_name(f"{destination.stem}_frames")
        frames_dir.mkdir(parents=True, exist_ok=True)

        try:
            try:
                frame_count = self._capture_frames(page.driver, frames_dir, options, on_progress)
            except WebDriverException as exc:
                raise CaptureError(f"Video frame capture failed: {getattr(exc, 'msg', None) or exc}") from exc

            LOGGER.info("Captured %d frames, encoding %s", frame_count, destination.name)
            output, media_type, codec = self._encode(frames_dir, destination, options.frame_rate)
        finally:
            shutil.rmtree(frames_dir, ignore_errors=True)

        return ArtifactDescriptor(
            path=str(output),
            kind=self.kind,
            media_type=media_type,
            size_bytes=output.stat().st_size if output.exists() else None,
            metadata={
                "frames": frame_count,
                "frame_rate": options.frame_rate,
                "codec": codec,
                "duration_seconds": round(frame_count / options.frame_rate, 3),
            },
        )

    def _capture_frames(
        self,
        driver: Any,
        frames_dir: Path,
        options: CrawlOptions,
        on_progress: ProgressCallback | None,
    ) -> int:
        metrics = _scroll_metrics(driver)
        total_scroll = max(0, metrics["scroll_height"] - metrics["client_height"])
        frame_delay = 1.0 / options.frame_rate

        frame_count = 0

        def grab() -> None:
            nonlocal frame_count
            path = frames_dir / f"frame_{frame_count:06d}.png"
            if not driver.save_screenshot(str(path)):
                raise CaptureError(f"Browser refused to write frame {path.name}")
            frame_count += 1

        driver.execute_script("window.scrollTo(0, 0);")
        self._sleep(FINAL_RENDER_WAIT_SECONDS)

        for _ in range(math.ceil(options.pause_at_top_ms / 1000 * options.frame_rate)):
            grab()

        scroll_frames = math.ceil(total_scroll / options.scroll_speed)
        for step in range(scroll_frames + 1):
            scroll_y = min(step * options.scroll_speed, total_scroll)
            driver.execute_script("window.scrollTo(0, arguments[0]);", scroll_y)
            self._sleep(frame_delay / 2)
            grab()

            if on_progress is not None and step % VIDEO_PROGRESS_EVERY_FRAMES == 0:
                progress = round(step / scroll_frames * 100) if scroll_frames else 100
                on_progress(progress, frame_count)

        for _ in range(math.ceil(options.pause_at_bottom_ms / 1000 * options.frame_rate)):
            grab()

        return frame_count

    def _encode(self, frames_dir: Path, destination: Path, frame_rate: int) -> tuple[Path, str, str]:
        pattern = str(frames_dir / "frame_%06d.png")
        webm = destination.with_suffix(".webm")
        primary = [
            self.ffmpeg_path, "-y",
            "-framerate", str(frame_rate),
            "-i", pattern,
            "-c:v", "libvpx-vp9",
            "-b:v", "2M",
            "-pix_fmt", "yuva420p",
            "-auto-alt-ref", "0",
            str(webm),
        ]
        code = self._ffmpeg(primary)
        if code == 0:
            return webm, "video/webm", "vp9"

        LOGGER.warning("VP9 encoding failed (exit %s); trying H.264 MP4", code)
        mp4 = destination.with_suffix(".mp4")
        fallback = [
            self.ffmpeg_path, "-y",
            "-framerate", str(frame_rate),
            "-i", pattern,
            "-c:v", "libx264",
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
            str(mp4),
        ]
        if self._ffmpeg(fallback) == 0:
            return mp4, "video/mp4", "h264"

        raise CaptureError(f"FFmpeg failed with code {code}. Make sure ffmpeg is installed.")

    def _ffmpeg(self, args: list[str]) -> int:
        try:
            completed = self._run(args, capture_output=True, check=False)
        except FileNotFoundError as exc:
            raise CaptureError(f"FFmpeg not found. Please install ffmpeg. Error: {exc}") from exc
        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", "replace") if isinstance(completed.stderr, bytes) else completed.stderr
            LOGGER.debug("ffmpeg stderr: %s", (stderr or "")[-2000:])
        return completed.returncode


def build_capturer(mode: CaptureMode, *, ffmpeg_path: str | None = None) -> Capturer:
    """Return the capturer for `mode`."""

    if mode == CaptureMode.VIDEO:
        return VideoCapturer(ffmpeg_path)
    return ScreenshotCapturer()


__all__ = [
    "Capturer",
    "ProgressCallback",
    "ScreenshotCapturer",
    "VideoCapturer",
    "build_capturer",
    "png_dimensions",
]
