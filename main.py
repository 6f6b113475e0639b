"""ASGI entrypoint for running the Chiefs News API with Uvicorn."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the chiefsnews package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import uvicorn  # noqa: E402

from chiefsnews.api.app import create_app  # noqa: E402  (import after path setup)
from chiefsnews.config import Settings  # noqa: E402

settings = Settings.from_env()
app = create_app(settings)

__all__ = ("app",)


def main() -> None:
    """Serve the API, draining in-flight requests on shutdown."""

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_grace_seconds,
    )


if __name__ == "__main__":
    main()
