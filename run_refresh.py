"""Convenience script for running a single ingestion pass locally."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the chiefsnews package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chiefsnews.config import FeedRegistry, Settings  # noqa: E402  (import after path setup)
from chiefsnews.services.ingestor import FeedIngestor  # noqa: E402
from chiefsnews.store import ArticleStore, ensure_database_url  # noqa: E402


def main() -> None:
    """Load the feed configuration and fetch every feed once."""

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    registry = FeedRegistry(settings.feeds_path)
    store = ArticleStore(ensure_database_url(settings.database_path))
    try:
        ingestor = FeedIngestor(registry, store, timeout=settings.fetch_timeout)
        if not ingestor.feeds:
            logging.error("No valid feeds configured in %s", settings.feeds_path)
            sys.exit(1)

        new_articles = asyncio.run(ingestor.fetch_all_feeds())
        print(json.dumps({"newArticles": new_articles, "total": store.count_total()}, indent=2))
    finally:
        store.close()


if __name__ == "__main__":
    main()
