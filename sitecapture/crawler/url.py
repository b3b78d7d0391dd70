"""URL canonicalization, origin helpers, and same-origin link extraction."""

from __future__ import annotations

from urllib.parse import quote, urljoin, urlsplit, SplitResult

from bs4 import BeautifulSoup


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:")

# Characters a browser URL parser leaves untouched in a path.
_PATH_SAFE_CHARS = "/%!$&'()*+,;=:@-._~|[]^"


def _split(url: str) -> SplitResult | None:
    raw = (url or "").strip()
    if not raw:
        return None
    try:
        parsed = urlsplit(raw)
        # Accessing .port validates it; urllib raises lazily.
        parsed.port
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return parsed


def _has_default_port(scheme: str, port: int | None) -> bool:
    if port is None:
        return False
    return (scheme == "http" and port == 80) or (scheme == "https" and port == 443)


def _origin_of(parsed: SplitResult) -> str:
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"

    port = parsed.port
    if port is None or _has_default_port(scheme, port):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def browser_path(path: str) -> str:
    """Percent-encode a path the way a browser URL parser exposes it."""

    return quote(path, safe=_PATH_SAFE_CHARS)


def url_origin(url: str) -> str | None:
    """Return `scheme://host[:port]` for a URL, or None when unparsable."""

    parsed = _split(url)
    if parsed is None:
        return None
    return _origin_of(parsed)


def canonicalize_url(url: str) -> str:
    """Normalize a URL to the identity string used for visited-set membership.

    Drops the fragment and one trailing path slash, keeps origin and query verbatim.
    Unparsable input is returned unchanged so it still has a stable identity.
    """

    parsed = _split(url)
    if parsed is None:
        return url

    path = browser_path(parsed.path)
    if path.endswith("/"):
        path = path[:-1]

    query = f"?{parsed.query}" if parsed.query else ""
    return f"{_origin_of(parsed)}{path}{query}"


def host_from_url(url: str) -> str:
    """Extract lower-cased host without a leading `www.`."""

    parsed = _split(url)
    if parsed is None:
        return ""
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def domain_label(url: str) -> str:
    """Filesystem-friendly domain name, e.g. `www.example.co.uk` -> `example-co-uk`."""

    host = host_from_url(url)
    if not host:
        return "unknown"
    return host.replace(".", "-")


def is_http_url(url: str) -> bool:
    """Return True if URL is absolute with an http(s) scheme."""

    parsed = _split(url)
    if parsed is None:
        return False
    return parsed.scheme.lower() in DEFAULT_ALLOWED_SCHEMES


def is_internal_url(base_url: str, candidate: str) -> bool:
    """Return True when `candidate` (resolved against `base_url`) shares its host."""

    base = _split(base_url)
    if base is None:
        return False

    try:
        resolved = urljoin(base_url, candidate)
    except ValueError:
        return False

    target = _split(resolved)
    if target is None:
        return False
    return (base.hostname or "").lower() == (target.hostname or "").lower()


def resolve_href(page_url: str, href: str | None) -> str | None:
    """Resolve one anchor href into an absolute http(s) URL, or None if unusable."""

    if href is None:
        return None

    candidate = href.strip()
    if not candidate:
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(page_url, candidate)
    except ValueError:
        return None

    # In-page anchors and fragment links are never crawled.
    if "#" in absolute:
        return None

    if not is_http_url(absolute):
        return None
    return absolute


def extract_links_from_html(
    html: str | bytes,
    *,
    base_url: str,
    origin_url: str,
) -> list[str]:
    """Extract canonical same-host links from anchor tags.

    `base_url` is the page the HTML came from (relative links resolve against it);
    `origin_url` is the crawl's start URL that defines what counts as internal.
    Returns links in document order with duplicates removed.
    """

    soup = BeautifulSoup(html, "lxml")

    out: list[str] = []
    seen: set[str] = set()

    for element in soup.find_all("a", href=True):
        resolved = resolve_href(base_url, element.get("href"))
        if not resolved:
            continue

        if not is_internal_url(origin_url, resolved):
            continue

        canonical = canonicalize_url(resolved)
        if canonical in seen:
            continue

        seen.add(canonical)
        out.append(canonical)

    return out


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "browser_path",
    "canonicalize_url",
    "domain_label",
    "extract_links_from_html",
    "host_from_url",
    "is_http_url",
    "is_internal_url",
    "resolve_href",
    "url_origin",
]
