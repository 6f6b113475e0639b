"""Validation and sanitisation helpers for untrusted input.

Every function here is pure: it never touches the network, the database or
global state, and the same input always produces the same output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Sequence
from urllib.parse import urlparse

__all__ = [
    "ArticleValidation",
    "DEFAULT_HOURS",
    "DEFAULT_LIMIT",
    "DEFAULT_OFFSET",
    "MAX_HOURS",
    "MAX_LIMIT",
    "MAX_OFFSET",
    "is_valid_feed_url",
    "is_valid_url",
    "sanitize_text",
    "validate_article",
    "validate_hours",
    "validate_pagination",
    "validate_source",
]

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0
MAX_LIMIT = 100
MAX_OFFSET = 10_000

DEFAULT_HOURS = 24
MAX_HOURS = 168

ALLOWED_SCHEMES = {"http", "https"}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_WHITESPACE = re.compile(r"\s+")


def _parse_int(value: Any) -> int | None:
    """Parse the leading integer of ``value`` the way a lenient form parser would."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else None
    if not isinstance(value, str):
        return None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def _clamp(value: int, lower: int, upper: int) -> int:
    return min(max(value, lower), upper)


def validate_pagination(limit: Any, offset: Any) -> tuple[int, int]:
    """Return a usable ``(limit, offset)`` pair for any input.

    Missing, non-numeric and zero values fall back to the defaults before
    clamping ``limit`` to ``[1, 100]`` and ``offset`` to ``[0, 10000]``.
    """

    parsed_limit = _parse_int(limit) or DEFAULT_LIMIT
    parsed_offset = _parse_int(offset) or DEFAULT_OFFSET
    return _clamp(parsed_limit, 1, MAX_LIMIT), _clamp(parsed_offset, 0, MAX_OFFSET)


def validate_hours(hours: Any) -> int:
    """Return a look-back window between one hour and one week."""

    parsed = _parse_int(hours) or DEFAULT_HOURS
    return _clamp(parsed, 1, MAX_HOURS)


def validate_source(source: Any, valid_sources: Iterable[str]) -> str | None:
    """Return the trimmed ``source`` when it is on the allowlist, else ``None``."""

    if not source or not isinstance(source, str):
        return None

    trimmed = source.strip()
    if trimmed in set(valid_sources):
        return trimmed
    return None


def is_valid_url(url: Any) -> bool:
    """Return ``True`` only for well formed ``http``/``https`` URLs."""

    if not url or not isinstance(url, str):
        return False
    if _WHITESPACE.search(url):
        return False

    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
        parsed.port  # raises ValueError for malformed ports
    except ValueError:
        return False

    return parsed.scheme.lower() in ALLOWED_SCHEMES and bool(hostname)


def is_valid_feed_url(url: Any, allowed_domains: Sequence[str] = ()) -> bool:
    """Return ``True`` when ``url`` is valid and hosted on an allowlisted domain.

    A hostname matches when it equals an allowlisted domain or is one of its
    subdomains. An empty allowlist accepts every valid URL.
    """

    if not is_valid_url(url):
        return False
    if not allowed_domains:
        return True

    hostname = (urlparse(url).hostname or "").lower()
    for domain in allowed_domains:
        normalized = domain.lower().strip()
        if not normalized:
            continue
        if hostname == normalized or hostname.endswith(f".{normalized}"):
            return True
    return False


def sanitize_text(text: Any, max_length: int = 10_000) -> str:
    """Collapse whitespace, trim and truncate ``text`` to ``max_length`` characters."""

    if not text or not isinstance(text, str):
        return ""

    collapsed = _WHITESPACE.sub(" ", text).strip()
    return collapsed[:max_length]


@dataclass(frozen=True)
class ArticleValidation:
    """Outcome of :func:`validate_article`."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_article(article: Mapping[str, Any]) -> ArticleValidation:
    """Check a candidate article, collecting every rule it violates."""

    errors: List[str] = []

    if _is_blank(article.get("title")):
        errors.append("Title is required")

    if not is_valid_url(article.get("link")):
        errors.append("Invalid article link")

    if _is_blank(article.get("source")):
        errors.append("Source is required")

    image_url = article.get("image_url")
    if image_url and not is_valid_url(image_url):
        errors.append("Invalid image URL")

    return ArticleValidation(is_valid=not errors, errors=errors)
