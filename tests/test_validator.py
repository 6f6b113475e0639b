"""Tests for :mod:`chiefsnews.validator`."""

from __future__ import annotations

import pytest

from chiefsnews.validator import (
    is_valid_feed_url,
    is_valid_url,
    sanitize_text,
    validate_article,
    validate_hours,
    validate_pagination,
    validate_source,
)


@pytest.mark.parametrize(
    ("limit", "offset", "expected"),
    [
        (None, None, (50, 0)),
        ("20", "40", (20, 40)),
        ("abc", "xyz", (50, 0)),
        ("0", "0", (50, 0)),
        ("-5", "-10", (1, 0)),
        ("1000", "999999", (100, 10000)),
        ("12abc", "3.9", (12, 3)),
        (7, 14, (7, 14)),
        ([], {}, (50, 0)),
    ],
)
def test_validate_pagination_always_returns_usable_pair(limit, offset, expected) -> None:
    result = validate_pagination(limit, offset)

    assert result == expected
    assert 1 <= result[0] <= 100
    assert 0 <= result[1] <= 10000


@pytest.mark.parametrize(
    ("hours", "expected"),
    [(None, 24), ("", 24), ("6", 6), ("0", 24), ("-3", 1), ("500", 168), ("nope", 24)],
)
def test_validate_hours_clamps_to_one_week(hours, expected) -> None:
    assert validate_hours(hours) == expected


def test_validate_source_requires_exact_trimmed_match() -> None:
    sources = ["Arrowhead Pride", "ESPN"]

    assert validate_source("  ESPN ", sources) == "ESPN"
    assert validate_source("espn", sources) is None
    assert validate_source("NFL.com", sources) is None
    assert validate_source("", sources) is None
    assert validate_source(None, sources) is None
    assert validate_source(["ESPN"], sources) is None


@pytest.mark.parametrize(
    "url",
    ["https://www.arrowheadpride.com/story", "http://example.com", "HTTPS://EXAMPLE.COM/a?b=c"],
)
def test_is_valid_url_accepts_http_and_https(url) -> None:
    assert is_valid_url(url)


@pytest.mark.parametrize(
    "url",
    [
        None,
        "",
        "not-a-url",
        "javascript:alert(1)",
        "data:text/html,<b>x</b>",
        "ftp://arrowheadpride.com/feed",
        "https://",
        "https://exa mple.com",
        "http://example.com:notaport/",
        42,
    ],
)
def test_is_valid_url_rejects_everything_else(url) -> None:
    assert not is_valid_url(url)


def test_is_valid_feed_url_checks_scheme_and_allowlist() -> None:
    allowed = ["arrowheadpride.com"]

    assert not is_valid_feed_url("ftp://arrowheadpride.com/feed", allowed)
    assert is_valid_feed_url("https://www.arrowheadpride.com/feed", allowed)
    assert is_valid_feed_url("https://ARROWHEADPRIDE.com/feed", allowed)
    assert not is_valid_feed_url("https://evilarrowheadpride.com/feed", allowed)
    assert not is_valid_feed_url("https://arrowheadpride.com.evil.io/feed", allowed)


def test_is_valid_feed_url_with_empty_allowlist_accepts_valid_urls() -> None:
    assert is_valid_feed_url("https://anything.example/rss", [])
    assert not is_valid_feed_url("javascript:alert(1)", [])


def test_validate_article_reports_missing_title() -> None:
    result = validate_article({"title": "", "link": "https://x.com/a", "source": "X"})

    assert not result.is_valid
    assert any("Title" in error for error in result.errors)


def test_validate_article_reports_invalid_link() -> None:
    result = validate_article({"title": "Hi", "link": "not-a-url", "source": "X"})

    assert not result.is_valid
    assert any("link" in error for error in result.errors)


def test_validate_article_collects_every_error() -> None:
    result = validate_article(
        {"title": "  ", "link": "javascript:alert(1)", "source": "", "image_url": "ftp://x/y.png"}
    )

    assert result.errors == [
        "Title is required",
        "Invalid article link",
        "Source is required",
        "Invalid image URL",
    ]


def test_validate_article_accepts_complete_article() -> None:
    result = validate_article(
        {
            "title": "Chiefs win",
            "link": "https://www.chiefs.com/news/win",
            "source": "Chiefs.com",
            "image_url": None,
        }
    )

    assert result.is_valid
    assert result.errors == []


def test_sanitize_text_collapses_and_truncates() -> None:
    assert sanitize_text("  Chiefs \n\t win  ") == "Chiefs win"
    assert sanitize_text("x" * 20, max_length=5) == "xxxxx"
    assert sanitize_text(None) == ""
    assert sanitize_text(123) == ""
