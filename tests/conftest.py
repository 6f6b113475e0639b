from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Iterator, Sequence

import pytest

from chiefsnews.store import MEMORY_DATABASE_URL, ArticleStore

RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Test feed</title>
    <link>https://www.arrowheadpride.com/</link>
    <description>Chiefs coverage</description>
    {items}
  </channel>
</rss>
"""

ITEM_TEMPLATE = """<item>
      <title>{title}</title>
      <link>{link}</link>
      <description><![CDATA[{description}]]></description>
      <pubDate>{pub_date}</pubDate>
    </item>"""


@pytest.fixture
def store() -> Iterator[ArticleStore]:
    article_store = ArticleStore(MEMORY_DATABASE_URL)
    yield article_store
    article_store.close()


@pytest.fixture
def write_feeds(tmp_path: Path) -> Callable[[Sequence[dict]], Path]:
    def _write(feeds: Sequence[dict]) -> Path:
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps({"feeds": list(feeds)}), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def rss_document() -> Callable[[Sequence[dict]], bytes]:
    """Build an RSS 2.0 document from ``{"title", "link", ...}`` dicts."""

    def _build(items: Sequence[dict]) -> bytes:
        rendered = "\n    ".join(
            ITEM_TEMPLATE.format(
                title=item.get("title", ""),
                link=item.get("link", ""),
                description=item.get("description", ""),
                pub_date=item.get("pub_date", "Mon, 06 Oct 2025 14:30:00 GMT"),
            )
            for item in items
        )
        return RSS_TEMPLATE.format(items=rendered).encode("utf-8")

    return _build
