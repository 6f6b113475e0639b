"""Feed ingestion used by the API, the scheduler and the CLI tools.

One ingestion pass fetches every configured feed, turns each item into a
validated :class:`~chiefsnews.models.Article` and writes it through the store,
counting how many links were new.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterator, List, Mapping

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil.parser import parse as parse_date
from fastapi.concurrency import run_in_threadpool
from requests.adapters import HTTPAdapter

from chiefsnews.config import FeedConfig, FeedRegistry
from chiefsnews.models import Article
from chiefsnews.store import ArticleStore
from chiefsnews.validator import is_valid_url, sanitize_text, validate_article

__all__ = ["FeedFetchError", "FeedIngestor"]

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BATCH_SIZE = 3
MAX_TITLE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 2000
REQUEST_TIMEOUT = 15.0

DEFAULT_HEADERS = {
    "User-Agent": "chiefs-news/1.0 (RSS reader)",
    "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
}

# Common timezone abbreviations found in RSS pubDate values
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
}

SleepFunc = Callable[[float], Awaitable[Any]]


class FeedFetchError(RuntimeError):
    """Raised when a downloaded feed document cannot be parsed."""


def _html_to_text(value: Any) -> str:
    if not value or not isinstance(value, str):
        return ""
    if "<" not in value:
        return value
    return BeautifulSoup(value, "lxml").get_text(" ", strip=True)


def _first_img_src(html: Any) -> str | None:
    if not html or not isinstance(html, str) or "<img" not in html.lower():
        return None
    image = BeautifulSoup(html, "lxml").find("img", src=True)
    return image["src"].strip() if image is not None else None


def _image_candidates(entry: Mapping[str, Any]) -> Iterator[str | None]:
    for enclosure in entry.get("enclosures") or []:
        yield enclosure.get("href") or enclosure.get("url")
    for thumbnail in entry.get("media_thumbnail") or []:
        yield thumbnail.get("url")
    for content in entry.get("media_content") or []:
        yield content.get("url")
    for content in entry.get("content") or []:
        yield _first_img_src(content.get("value"))
    yield _first_img_src(entry.get("summary"))


def _normalize_pub_date(entry: Mapping[str, Any]) -> datetime:
    """Return the entry's publication time, falling back to now.

    The raw date strings are tried first with dateutil, then the structs
    feedparser derived from them.
    """

    for key in ("updated", "published", "pubDate"):
        raw = entry.get(key)
        if not raw or not isinstance(raw, str):
            continue
        try:
            value = parse_date(raw, tzinfos=TZINFOS)
        except (ValueError, OverflowError):
            continue
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    for key in ("updated_parsed", "published_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                continue

    return datetime.now(timezone.utc)


class FeedIngestor:
    """Fetch configured feeds and persist their items as articles."""

    def __init__(
        self,
        registry: FeedRegistry,
        store: ArticleStore,
        *,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=BATCH_SIZE, pool_maxsize=BATCH_SIZE)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            session.headers.update(DEFAULT_HEADERS)

        self._registry = registry
        self._store = store
        self._session = session
        self._timeout = timeout
        self._sleep = sleep
        self.load_feeds()

    @property
    def registry(self) -> FeedRegistry:
        return self._registry

    @property
    def feeds(self) -> List[FeedConfig]:
        return self._registry.feeds

    def load_feeds(self) -> List[FeedConfig]:
        """Read the feed configuration, keeping only allowlisted feeds."""

        return self._registry.reload()

    def reload_feeds(self) -> List[FeedConfig]:
        """Re-read the feed configuration so new feeds apply without a restart."""

        feeds = self._registry.reload()
        logger.info("Reloaded feed configuration: %d feeds active", len(feeds))
        return feeds

    @staticmethod
    def extract_image_url(entry: Mapping[str, Any]) -> str | None:
        """Return the first usable image URL attached to ``entry``."""

        for candidate in _image_candidates(entry):
            if candidate and is_valid_url(candidate):
                return candidate
        return None

    def sanitize_article_data(self, entry: Mapping[str, Any], feed: FeedConfig) -> Article | None:
        """Build a validated article from a feed entry, or ``None`` if it is unusable."""

        candidate = {
            "title": sanitize_text(_html_to_text(entry.get("title")), MAX_TITLE_LENGTH),
            "link": (entry.get("link") or entry.get("id") or "").strip(),
            "description": sanitize_text(
                _html_to_text(entry.get("summary") or entry.get("description")),
                MAX_DESCRIPTION_LENGTH,
            ),
            "pub_date": _normalize_pub_date(entry),
            "source": feed.source,
            "image_url": self.extract_image_url(entry),
        }

        validation = validate_article(candidate)
        if not validation.is_valid:
            logger.debug(
                "Skipping item from %s (%s): %s",
                feed.name,
                candidate["link"] or "no link",
                "; ".join(validation.errors),
            )
            return None

        return Article(**candidate)

    def _download(self, url: str) -> bytes:
        response = self._session.get(url, timeout=self._timeout)
        response.raise_for_status()
        return response.content

    @staticmethod
    def _parse_entries(content: bytes, feed: FeedConfig) -> list:
        parsed = feedparser.parse(content)
        if parsed.get("bozo") and not parsed.entries:
            reason = parsed.get("bozo_exception") or "unrecognised document"
            raise FeedFetchError(f"Could not parse feed {feed.url}: {reason}")
        return list(parsed.entries)

    async def parse_feed(self, feed: FeedConfig) -> int:
        """Fetch one feed and store its items, returning the number of new articles.

        Fetch and parse failures are retried up to :data:`MAX_RETRIES` times,
        waiting ``2 ** attempt`` seconds between attempts. A feed that keeps
        failing contributes ``0``.
        """

        entries: list = []
        for attempt in range(MAX_RETRIES + 1):
            try:
                logger.info("Fetching feed: %s", feed.name)
                content = await run_in_threadpool(self._download, feed.url)
                entries = self._parse_entries(content, feed)
                break
            except (requests.RequestException, FeedFetchError) as exc:
                if attempt >= MAX_RETRIES:
                    logger.error(
                        "Giving up on feed %s after %d attempts: %s", feed.name, attempt + 1, exc
                    )
                    return 0
                delay = 2**attempt
                logger.warning(
                    "Error fetching feed %s (attempt %d of %d), retrying in %ds: %s",
                    feed.name,
                    attempt + 1,
                    MAX_RETRIES + 1,
                    delay,
                    exc,
                )
                await self._sleep(delay)

        new_articles = 0
        for entry in entries:
            article = self.sanitize_article_data(entry, feed)
            if article is None:
                continue
            if self._store.insert_if_absent(article):
                new_articles += 1

        logger.info("%s: %d new articles added", feed.name, new_articles)
        return new_articles

    async def fetch_all_feeds(self) -> int:
        """Run one ingestion pass over every configured feed.

        Feeds are fetched in batches of :data:`BATCH_SIZE`; the feeds inside a
        batch run concurrently and batches run one after another.
        """

        feeds = self._registry.feeds
        if not feeds:
            logger.warning("No valid feeds configured, skipping fetch")
            return 0

        logger.info("Starting feed fetch for %d feeds", len(feeds))
        started = time.perf_counter()

        total_new = 0
        for index in range(0, len(feeds), BATCH_SIZE):
            batch = feeds[index : index + BATCH_SIZE]
            results = await asyncio.gather(
                *(self.parse_feed(feed) for feed in batch), return_exceptions=True
            )
            for feed, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.error("Unexpected error processing feed %s", feed.name, exc_info=result)
                    continue
                if isinstance(result, BaseException):
                    raise result
                total_new += result

        duration = time.perf_counter() - started
        logger.info("Fetch complete: %d new articles in %.2fs", total_new, duration)
        return total_new
