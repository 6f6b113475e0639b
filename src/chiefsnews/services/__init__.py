"""Service layer entry points for Chiefs News."""

from __future__ import annotations

from .ingestor import FeedFetchError, FeedIngestor  # noqa: F401
from .scheduler import RefreshScheduler, parse_refresh_interval  # noqa: F401

__all__ = ["FeedFetchError", "FeedIngestor", "RefreshScheduler", "parse_refresh_interval"]
