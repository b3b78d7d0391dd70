"""Structural URL shapes used to suppress near-duplicate pages.

`/product/1234` and `/product/5678` collapse to the same shape
`https://host/product/{item}`, so once one of them has been processed the frontier
can refuse siblings. The rules are a heuristic: distinct content may share a shape
and equivalent content may not. Rule order is observable crawl behavior.
"""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlsplit

from .url import browser_path, url_origin


DEFAULT_COLLECTION_KEYWORDS: frozenset[str] = frozenset(
    {
        # E-commerce
        "product", "products", "item", "items", "category", "categories", "cat",
        "collection", "collections", "shop", "store", "catalog", "brand", "brands",
        "tag", "tags",
        # Content
        "blog", "blogs", "post", "posts", "article", "articles", "news", "page",
        "pages", "portfolio", "project", "projects", "gallery", "galleries", "event",
        "events", "case-study", "case-studies",
        # People
        "author", "authors", "user", "users", "profile", "profiles", "team",
        "member", "members",
        # Documentation
        "docs", "doc", "documentation", "guide", "guides", "tutorial", "tutorials",
        "lesson", "lessons",
        # Forums
        "topic", "topics", "thread", "threads", "forum", "forums", "discussion",
        "discussions",
        # Media
        "video", "videos", "photo", "photos", "image", "images",
        # Listings
        "property", "properties", "listing", "listings", "apartment", "apartments",
        "house", "houses",
        # Jobs
        "job", "jobs", "career", "careers", "vacancy", "vacancies",
        # Services
        "service", "services",
        # Locality
        "location", "locations", "city", "cities", "region", "regions",
    }
)

ITEM_TOKEN = "{item}"
UUID_TOKEN = "{uuid}"
ID_TOKEN = "{id}"
SLUG_TOKEN = "{slug}"
SLUG_ID_TOKEN = "{slug-id}"
DYNAMIC_TOKEN = "{dynamic}"
DATE_SLUG_TOKEN = "{date-slug}"
HASH_TOKEN = "{hash}"

_FLAGS = re.IGNORECASE | re.ASCII

_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", _FLAGS)
_NUMERIC_RE = re.compile(r"[0-9]+", _FLAGS)
_SLUG_RE = re.compile(r"[a-z0-9]+[-_][a-z0-9_-]+", _FLAGS)
_SLUG_ID_RE = re.compile(r"[a-z_-]+[0-9]+", _FLAGS)
_ENCODED_RE = re.compile(r"%[0-9a-f]{2}", _FLAGS)
_DATE_PREFIX_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}", _FLAGS)
_HASH_RE = re.compile(r"[a-z0-9]{6,12}", _FLAGS)
_ALPHA_RE = re.compile(r"[a-z]+", _FLAGS)

DYNAMIC_SEGMENT_MIN_LENGTH = 51


class PatternClassifier:
    """Map URLs to structural shapes using an injected keyword vocabulary."""

    def __init__(self, keywords: Iterable[str] | None = None) -> None:
        source = DEFAULT_COLLECTION_KEYWORDS if keywords is None else keywords
        self.keywords: frozenset[str] = frozenset(word.strip().lower() for word in source if word.strip())

    def classify(self, url: str) -> str:
        """Return the shape of `url`, or `url` itself when it cannot be parsed."""

        origin = url_origin(url)
        if origin is None:
            return url

        path = browser_path(urlsplit(url.strip()).path)
        segments = [segment for segment in path.split("/") if segment]

        after_collection = False
        shaped: list[str] = []
        for index, segment in enumerate(segments):
            if segment.lower() in self.keywords:
                after_collection = True
                shaped.append(segment)
                continue

            # Only the segment right after a collection keyword is an item.
            if after_collection:
                after_collection = False
                shaped.append(ITEM_TOKEN)
                continue

            shaped.append(self._classify_segment(segment, index))

        return origin + "/" + "/".join(shaped)

    __call__ = classify

    @staticmethod
    def _classify_segment(segment: str, index: int) -> str:
        if _UUID_RE.fullmatch(segment):
            return UUID_TOKEN

        if _NUMERIC_RE.fullmatch(segment):
            return ID_TOKEN

        if index > 0 and _SLUG_RE.fullmatch(segment):
            return SLUG_TOKEN

        if index > 0 and _SLUG_ID_RE.fullmatch(segment):
            return SLUG_ID_TOKEN

        if len(segment) >= DYNAMIC_SEGMENT_MIN_LENGTH or _ENCODED_RE.search(segment):
            return DYNAMIC_TOKEN

        if _DATE_PREFIX_RE.match(segment):
            return DATE_SLUG_TOKEN

        if index > 0 and _HASH_RE.fullmatch(segment) and not _ALPHA_RE.fullmatch(segment):
            return HASH_TOKEN

        return segment


_DEFAULT_CLASSIFIER = PatternClassifier()


def classify_url(url: str) -> str:
    """Classify with the default keyword vocabulary."""

    return _DEFAULT_CLASSIFIER.classify(url)


__all__ = [
    "DEFAULT_COLLECTION_KEYWORDS",
    "PatternClassifier",
    "classify_url",
]
