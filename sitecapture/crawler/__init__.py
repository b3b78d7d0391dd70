"""Crawler package: frontier, sessions, collaborators, and the session manager."""

from .capture import Capturer, ScreenshotCapturer, VideoCapturer, build_capturer
from .config import CrawlerSettings, CrawlOptions, load_config, save_config
from .errors import (
    CaptureError,
    CrawlerError,
    NavigationError,
    PageError,
    SessionNotFoundError,
    SetupError,
)
from .events import (
    CollectingEventSink,
    CrawlEvent,
    EventKind,
    EventSink,
    FanoutEventSink,
    JsonlEventSink,
    LoggingEventSink,
    StatusLevel,
)
from .frontier import AdmitResult, EnqueueStatus, Frontier, StopReason
from .navigator import Navigator, PageHandle, SeleniumNavigator
from .orchestrator import CrawlOrchestrator
from .patterns import DEFAULT_COLLECTION_KEYWORDS, PatternClassifier, classify_url
from .registry import SessionRegistry
from .service import SessionManager
from .session import CancellationToken, Session, generate_session_id
from .stats import StatsCollector
from .storage import Storage
from .types import (
    ArtifactDescriptor,
    CaptureMode,
    PageResult,
    SessionState,
    SkipRecord,
    Viewport,
    utc_now_iso,
)
from .url import canonicalize_url, domain_label, extract_links_from_html, is_internal_url, url_origin

__all__ = [
    "AdmitResult",
    "ArtifactDescriptor",
    "CancellationToken",
    "CaptureError",
    "CaptureMode",
    "Capturer",
    "CollectingEventSink",
    "CrawlEvent",
    "CrawlOptions",
    "CrawlOrchestrator",
    "CrawlerError",
    "CrawlerSettings",
    "DEFAULT_COLLECTION_KEYWORDS",
    "EnqueueStatus",
    "EventKind",
    "EventSink",
    "FanoutEventSink",
    "Frontier",
    "JsonlEventSink",
    "LoggingEventSink",
    "NavigationError",
    "Navigator",
    "PageError",
    "PageHandle",
    "PageResult",
    "PatternClassifier",
    "ScreenshotCapturer",
    "SeleniumNavigator",
    "Session",
    "SessionManager",
    "SessionNotFoundError",
    "SessionRegistry",
    "SessionState",
    "SetupError",
    "SkipRecord",
    "StatsCollector",
    "StatusLevel",
    "StopReason",
    "Storage",
    "VideoCapturer",
    "Viewport",
    "build_capturer",
    "canonicalize_url",
    "classify_url",
    "domain_label",
    "extract_links_from_html",
    "generate_session_id",
    "is_internal_url",
    "load_config",
    "save_config",
    "url_origin",
    "utc_now_iso",
]
