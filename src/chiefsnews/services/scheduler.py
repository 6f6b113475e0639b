"""Periodic ingestion passes driven by a cron-style interval."""

from __future__ import annotations

import asyncio
import logging
import re

from chiefsnews.services.ingestor import FeedIngestor

__all__ = ["RefreshScheduler", "parse_refresh_interval"]

logger = logging.getLogger(__name__)

_STEP = re.compile(r"^\*/(\d+)$")


def parse_refresh_interval(expression: str) -> int:
    """Translate a cron-style expression into an interval in seconds.

    Supported forms are ``*/N * * * *`` (every N minutes), ``0 */N * * *``
    (every N hours) and ``* * * * *`` (every minute).
    """

    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Expected 5 cron fields, got {len(fields)}: {expression!r}")

    minute, hour, day, month, weekday = fields
    if (day, month, weekday) != ("*", "*", "*"):
        raise ValueError(f"Only minute and hour steps are supported: {expression!r}")

    if hour == "*":
        if minute == "*":
            return 60
        match = _STEP.match(minute)
        if match and 0 < int(match.group(1)) <= 59:
            return int(match.group(1)) * 60
    elif minute == "0":
        match = _STEP.match(hour)
        if match and 0 < int(match.group(1)) <= 23:
            return int(match.group(1)) * 3600

    raise ValueError(f"Unsupported refresh schedule: {expression!r}")


class RefreshScheduler:
    """Run an ingestion pass at startup and then once per interval."""

    def __init__(self, ingestor: FeedIngestor, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._ingestor = ingestor
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @classmethod
    def from_cron(cls, ingestor: FeedIngestor, expression: str) -> "RefreshScheduler":
        return cls(ingestor, parse_refresh_interval(expression))

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run one pass, logging instead of raising on failure."""

        try:
            count = await self._ingestor.fetch_all_feeds()
        except Exception:
            logger.exception("Scheduled feed update failed")
            return 0
        logger.info("Scheduled feed update complete: %d new articles", count)
        return count

    async def _loop(self) -> None:
        logger.info("Performing initial feed fetch")
        await self.run_once()
        while True:
            await asyncio.sleep(self._interval)
            logger.info("Running scheduled feed update")
            await self.run_once()

    def start(self) -> None:
        """Start the background loop on the running event loop."""

        if self.running:
            return
        logger.info("Auto-refresh enabled: every %d seconds", self._interval)
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""

        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
