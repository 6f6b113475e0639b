"""Article storage backed by a relational database."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from chiefsnews.config import DEFAULT_DATABASE_PATH

_Pathish = Union[str, Path]

MEMORY_DATABASE_URL = "sqlite://"


def resolve_database_path(database_path: _Pathish | None = None) -> Path:
    """Return a :class:`Path` pointing at the SQLite database file.

    When ``None`` is provided, :data:`~chiefsnews.config.DEFAULT_DATABASE_PATH`
    is returned. The file is not created; see :func:`ensure_database_url`.
    """

    if database_path is None:
        return DEFAULT_DATABASE_PATH
    if isinstance(database_path, Path):
        return database_path
    return Path(database_path)


def ensure_database_url(database_path: _Pathish | None = None) -> str:
    """Create the database's parent directory and return its SQLAlchemy URL."""

    path = resolve_database_path(database_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


from .database import ArticleRow, ArticleStore  # noqa: E402

__all__ = [
    "ArticleRow",
    "ArticleStore",
    "MEMORY_DATABASE_URL",
    "ensure_database_url",
    "resolve_database_path",
]
