"""Exception hierarchy shared by the crawler and its collaborators."""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for crawler errors."""


class PageError(CrawlerError):
    """A failure confined to one page; the session keeps going."""


class NavigationError(PageError):
    """Page load timed out or failed at the network/browser level."""


class CaptureError(PageError):
    """Screenshot or video capture failed for the current page."""


class SetupError(CrawlerError):
    """The navigation collaborator could not be initialized."""


class SessionNotFoundError(CrawlerError, KeyError):
    """No stored session exists for the requested id."""

    def __str__(self) -> str:
        return f"Session not found: {self.args[0] if self.args else ''}"


__all__ = [
    "CaptureError",
    "CrawlerError",
    "NavigationError",
    "PageError",
    "SessionNotFoundError",
    "SetupError",
]
