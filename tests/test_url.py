from __future__ import annotations

import pytest

from sitecapture.crawler.url import (
    canonicalize_url,
    domain_label,
    extract_links_from_html,
    is_internal_url,
    resolve_href,
    url_origin,
)


@pytest.mark.parametrize(
    "variant",
    [
        "https://example.com/docs",
        "https://example.com/docs/",
        "https://example.com/docs#intro",
        "https://example.com/docs/#intro",
        "HTTPS://Example.COM/docs",
        "https://example.com:443/docs",
    ],
)
def test_canonicalize_collapses_slash_fragment_case_and_default_port(variant: str) -> None:
    assert canonicalize_url(variant) == "https://example.com/docs"


def test_canonicalize_keeps_query_and_non_default_port() -> None:
    assert canonicalize_url("https://example.com/a?page=1") != canonicalize_url("https://example.com/a?page=2")
    assert canonicalize_url("http://example.com:8080/a/") == "http://example.com:8080/a"


def test_canonicalize_root_and_userinfo() -> None:
    assert canonicalize_url("https://example.com/") == "https://example.com"
    assert canonicalize_url("https://example.com") == "https://example.com"
    assert canonicalize_url("https://user:pw@example.com/x") == "https://example.com/x"


def test_canonicalize_returns_unparsable_input_unchanged() -> None:
    assert canonicalize_url("not a url") == "not a url"
    assert canonicalize_url("http://example.com:notaport/") == "http://example.com:notaport/"


def test_canonicalize_percent_encodes_non_ascii_path() -> None:
    assert canonicalize_url("https://example.com/café") == "https://example.com/caf%C3%A9"


def test_origin_and_domain_label() -> None:
    assert url_origin("https://www.Example.co.uk:8443/path") == "https://www.example.co.uk:8443"
    assert url_origin("nope") is None
    assert domain_label("https://www.example.co.uk/path") == "example-co-uk"
    assert domain_label("garbage") == "unknown"


def test_is_internal_url_compares_hostnames() -> None:
    assert is_internal_url("https://example.com", "/about")
    assert is_internal_url("https://example.com", "http://example.com:8080/x")
    assert not is_internal_url("https://example.com", "https://blog.example.com/")
    assert not is_internal_url("https://example.com", "https://other.org/")


@pytest.mark.parametrize(
    "href",
    ["javascript:void(0)", "mailto:a@example.com", "tel:+100", "#top", "/page#section", "ftp://example.com/f", "   "],
)
def test_resolve_href_rejects_unusable_links(href: str) -> None:
    assert resolve_href("https://example.com/base/", href) is None


def test_extract_links_filters_and_dedupes_in_document_order() -> None:
    html = """
    <html><body>
      <a href="/b">B</a>
      <a href="a/">A relative</a>
      <a href="https://example.com/b/">B again</a>
      <a href="https://other.org/x">External</a>
      <a href="/c#frag">Fragment</a>
      <a href="mailto:me@example.com">Mail</a>
      <a>No href</a>
      <a href="/q?x=1">Query</a>
    </body></html>
    """

    links = extract_links_from_html(
        html,
        base_url="https://example.com/dir/page",
        origin_url="https://example.com",
    )

    assert links == [
        "https://example.com/b",
        "https://example.com/dir/a",
        "https://example.com/q?x=1",
    ]


def test_canonicalize_leaves_browser_literal_path_characters() -> None:
    assert canonicalize_url("https://x.com/a|b/c") == "https://x.com/a|b/c"
    assert canonicalize_url("https://x.com/v[1]/^x") == "https://x.com/v[1]/^x"
    assert canonicalize_url("https://x.com/a b/\"q\"") == "https://x.com/a%20b/%22q%22"
