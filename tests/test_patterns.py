from __future__ import annotations

import pytest

from sitecapture.crawler.patterns import PatternClassifier, classify_url


def test_collection_items_share_a_shape() -> None:
    assert classify_url("https://x.com/product/1234") == classify_url("https://x.com/product/5678")
    assert classify_url("https://x.com/product/1234") == "https://x.com/product/{item}"


def test_plain_page_is_its_own_shape() -> None:
    assert classify_url("https://x.com/about") == "https://x.com/about"


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://x.com/", "https://x.com/"),
        ("https://x.com/blog/my-first-post", "https://x.com/blog/{item}"),
        ("https://x.com/blog/my-first-post/comments", "https://x.com/blog/{item}/comments"),
        ("https://x.com/Blog/anything", "https://x.com/Blog/{item}"),
        ("https://x.com/order/123e4567-e89b-12d3-a456-426614174000", "https://x.com/order/{uuid}"),
        ("https://x.com/2024/recap", "https://x.com/{id}/recap"),
        ("https://x.com/about/our-team", "https://x.com/about/{slug}"),
        ("https://x.com/our-story", "https://x.com/our-story"),
        ("https://x.com/help/page2", "https://x.com/help/{slug-id}"),
        ("https://x.com/page2", "https://x.com/page2"),
        ("https://x.com/2024-01-15-launch", "https://x.com/{date-slug}"),
        ("https://x.com/files/a1b2c3d4", "https://x.com/files/{hash}"),
        ("https://x.com/files/install", "https://x.com/files/install"),
        ("https://x.com/search/caf%C3%A9", "https://x.com/search/{dynamic}"),
        ("https://x.com/s/" + "a" * 51, "https://x.com/s/{dynamic}"),
    ],
)
def test_segment_rules(url: str, expected: str) -> None:
    assert classify_url(url) == expected


def test_non_ascii_segments_count_as_encoded() -> None:
    assert classify_url("https://x.com/search/café") == "https://x.com/search/{dynamic}"


def test_query_and_fragment_do_not_affect_shape() -> None:
    assert classify_url("https://x.com/about?ref=nav#top") == "https://x.com/about"


def test_keyword_vocabulary_is_injectable() -> None:
    classifier = PatternClassifier(keywords=["recipes"])

    assert classifier.classify("https://x.com/recipes/lasagne") == "https://x.com/recipes/{item}"
    assert classifier.classify("https://x.com/product/lasagne") == "https://x.com/product/lasagne"


def test_unparsable_url_is_returned_unchanged() -> None:
    assert classify_url("::not a url::") == "::not a url::"


def test_browser_literal_characters_are_not_treated_as_encoded() -> None:
    assert classify_url("https://x.com/about/a|b") == "https://x.com/about/a|b"
    assert classify_url("https://x.com/about/a b") == "https://x.com/about/{dynamic}"
