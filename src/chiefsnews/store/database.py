"""SQLAlchemy implementation of the article store."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, create_engine, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from chiefsnews.models import Article, SourceCount
from chiefsnews.store import ensure_database_url

__all__ = ["ArticleRow", "ArticleStore", "Base"]

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Store timestamps as naive UTC and hand them back timezone-aware."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class ArticleRow(Base):
    __tablename__ = "articles"
    __table_args__ = (
        Index("ix_articles_pub_date", "pub_date"),
        Index("ix_articles_source", "source"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    pub_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


def _to_article(row: ArticleRow) -> Article:
    return Article(
        id=row.id,
        title=row.title,
        link=row.link,
        description=row.description or "",
        pub_date=row.pub_date,
        source=row.source,
        image_url=row.image_url,
        created_at=row.created_at,
    )


def _build_engine(database_url: str) -> Engine:
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        # A single shared connection keeps the in-memory database alive.
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, connect_args={"check_same_thread": False})


class ArticleStore:
    """Durable article collection keyed by ``link``.

    Writes are insert-if-absent; nothing is ever updated or deleted. Database
    faults are logged and reported as ``False`` or empty results instead of
    propagating to the caller.
    """

    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        if engine is None:
            if database_url is None:
                database_url = ensure_database_url()
            engine = _build_engine(database_url)
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        Base.metadata.create_all(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def insert_if_absent(self, article: Article) -> bool:
        """Insert ``article`` unless its link is already stored.

        Returns ``True`` only when a new row was written.
        """

        stmt = (
            sqlite_insert(ArticleRow)
            .values(
                title=article.title,
                link=article.link,
                description=article.description,
                pub_date=article.pub_date,
                source=article.source,
                image_url=article.image_url,
                created_at=_utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["link"])
        )

        try:
            with self._engine.begin() as connection:
                result = connection.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Error inserting article %s: %s", article.link, exc)
            return False

        return bool(result.rowcount and result.rowcount > 0)

    def _fetch(self, query) -> List[Article]:
        try:
            with self._sessions() as session:
                rows = session.scalars(query).all()
        except SQLAlchemyError as exc:
            logger.error("Error querying articles: %s", exc)
            return []
        return [_to_article(row) for row in rows]

    def list_articles(self, limit: int = 50, offset: int = 0) -> List[Article]:
        """Return a page of articles, newest first."""

        query = (
            select(ArticleRow)
            .order_by(ArticleRow.pub_date.desc(), ArticleRow.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return self._fetch(query)

    def list_by_source(self, source: str, limit: int = 50, offset: int = 0) -> List[Article]:
        """Return a page of articles from ``source``, newest first."""

        query = (
            select(ArticleRow)
            .where(ArticleRow.source == source)
            .order_by(ArticleRow.pub_date.desc(), ArticleRow.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return self._fetch(query)

    def list_recent(self, hours: int = 24, *, now: datetime | None = None) -> List[Article]:
        """Return every article published within the last ``hours`` hours."""

        reference = now or _utcnow()
        cutoff = reference - timedelta(hours=hours)
        query = (
            select(ArticleRow)
            .where(ArticleRow.pub_date >= cutoff)
            .order_by(ArticleRow.pub_date.desc(), ArticleRow.id.desc())
        )
        return self._fetch(query)

    def count_total(self) -> int:
        try:
            with self._sessions() as session:
                return int(session.scalar(select(func.count(ArticleRow.id))) or 0)
        except SQLAlchemyError as exc:
            logger.error("Error counting articles: %s", exc)
            return 0

    def group_by_source(self) -> List[SourceCount]:
        """Return article counts per source, largest first."""

        count = func.count(ArticleRow.id).label("count")
        query = (
            select(ArticleRow.source, count)
            .group_by(ArticleRow.source)
            .order_by(count.desc(), ArticleRow.source)
        )
        try:
            with self._sessions() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as exc:
            logger.error("Error grouping articles by source: %s", exc)
            return []
        return [SourceCount(source=source, count=total) for source, total in rows]

    def close(self) -> None:
        """Release pooled connections."""

        self._engine.dispose()
