"""Configuration models and helpers for the Chiefs News aggregator."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, List, Mapping

from pydantic import BaseModel, Field, ValidationError

from chiefsnews.validator import is_valid_feed_url

__all__ = [
    "ALLOWED_DOMAINS",
    "DEFAULT_DATABASE_PATH",
    "DEFAULT_FEEDS_PATH",
    "FeedConfig",
    "FeedRegistry",
    "FeedsConfig",
    "Settings",
    "load_feed_configs",
]

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_FEEDS_PATH = PROJECT_ROOT / "data" / "feeds.json"
DEFAULT_DATABASE_PATH = PROJECT_ROOT / "news.db"
DEFAULT_REFRESH_CRON = "*/30 * * * *"

#: Domains feeds may be fetched from. Subdomains of each entry are accepted too.
ALLOWED_DOMAINS = (
    "arrowheadpride.com",
    "chiefs.com",
    "kansascity.com",
    "espn.com",
    "nfl.com",
    "usatoday.com",
    "nbcsports.com",
    "cbssports.com",
    "si.com",
)


class FeedConfig(BaseModel):
    """A single RSS feed to poll."""

    name: str = Field(..., description="Human friendly feed name")
    url: str = Field(..., description="Feed URL")
    source: str = Field(..., description="Short label stored on every article from this feed")


class FeedsConfig(BaseModel):
    """Collection of :class:`FeedConfig` entries as stored in ``feeds.json``."""

    feeds: List[FeedConfig] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: Path | str | None = None) -> "FeedsConfig":
        """Load feed configuration data from a JSON file."""

        config_path = Path(path) if path else DEFAULT_FEEDS_PATH
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str | None = None) -> None:
        """Persist the configuration back to disk as JSON."""

        config_path = Path(path) if path else DEFAULT_FEEDS_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")


def load_feed_configs(
    path: Path | str | None = None, allowed_domains: Iterable[str] = ALLOWED_DOMAINS
) -> List[FeedConfig]:
    """Return the configured feeds whose URL passes the domain allowlist.

    A missing or malformed configuration file yields an empty list instead of
    an exception so the service keeps running without feeds.
    """

    domains = list(allowed_domains)
    try:
        config = FeedsConfig.from_file(path)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Could not load feed configuration: %s", exc)
        return []

    accepted: List[FeedConfig] = []
    for feed in config.feeds:
        if not is_valid_feed_url(feed.url, domains):
            logger.warning("Rejected feed %s: %s is not on the domain allowlist", feed.name, feed.url)
            continue
        accepted.append(feed)

    logger.info("Loaded %d of %d configured feeds", len(accepted), len(config.feeds))
    return accepted


class FeedRegistry:
    """The canonical feed list and source allowlist.

    One instance is shared between the ingestor and the HTTP layer so that a
    reload updates both at once.
    """

    def __init__(
        self, path: Path | str | None = None, allowed_domains: Iterable[str] = ALLOWED_DOMAINS
    ) -> None:
        self._path = Path(path) if path else DEFAULT_FEEDS_PATH
        self._allowed_domains = tuple(allowed_domains)
        self._feeds: List[FeedConfig] = []

    @property
    def path(self) -> Path:
        return self._path

    @property
    def allowed_domains(self) -> tuple[str, ...]:
        return self._allowed_domains

    @property
    def feeds(self) -> List[FeedConfig]:
        return list(self._feeds)

    @property
    def sources(self) -> List[str]:
        """Distinct source labels in configuration order."""

        seen: dict[str, None] = {}
        for feed in self._feeds:
            seen.setdefault(feed.source, None)
        return list(seen)

    def reload(self) -> List[FeedConfig]:
        """Re-read the configuration file and replace the current feed list."""

        self._feeds = load_feed_configs(self._path, self._allowed_domains)
        return self.feeds


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer, got {raw!r}") from exc


def _env_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number, got {raw!r}") from exc


class Settings(BaseModel):
    """Runtime settings, overridable through environment variables."""

    host: str = "0.0.0.0"
    port: int = 3000
    database_path: Path = DEFAULT_DATABASE_PATH
    feeds_path: Path = DEFAULT_FEEDS_PATH
    cors_origin: str = "*"
    refresh_cron: str = DEFAULT_REFRESH_CRON
    fetch_timeout: float = 15.0
    shutdown_grace_seconds: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``environ`` (defaults to :data:`os.environ`)."""

        env = os.environ if environ is None else environ
        return cls(
            host=env.get("HOST") or "0.0.0.0",
            port=_env_int(env, "PORT", 3000),
            database_path=Path(env.get("DATABASE_PATH") or DEFAULT_DATABASE_PATH),
            feeds_path=Path(env.get("FEEDS_PATH") or DEFAULT_FEEDS_PATH),
            cors_origin=env.get("CORS_ORIGIN") or "*",
            refresh_cron=env.get("REFRESH_CRON") or DEFAULT_REFRESH_CRON,
            fetch_timeout=_env_float(env, "FETCH_TIMEOUT", 15.0),
            shutdown_grace_seconds=_env_int(env, "SHUTDOWN_GRACE_SECONDS", 10),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
