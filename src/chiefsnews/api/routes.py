"""API routes exposing stored articles and the manual refresh trigger."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from chiefsnews.api.ratelimit import enforce_api_rate_limit, enforce_refresh_rate_limit
from chiefsnews.config import FeedRegistry
from chiefsnews.models import Article, SourceCount
from chiefsnews.services.ingestor import FeedIngestor
from chiefsnews.store import ArticleStore
from chiefsnews.validator import validate_hours, validate_pagination, validate_source

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(enforce_api_rate_limit)])


class ArticlesResponse(BaseModel):
    success: bool = True
    count: int
    total: int
    articles: List[Article] = Field(default_factory=list)


class ArticleListResponse(BaseModel):
    success: bool = True
    count: int
    articles: List[Article] = Field(default_factory=list)


class SourcesResponse(BaseModel):
    success: bool = True
    sources: List[SourceCount] = Field(default_factory=list)


class RefreshResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    new_articles: int = Field(..., alias="newArticles")


class Stats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_articles: int = Field(..., alias="totalArticles")
    sources: List[SourceCount] = Field(default_factory=list)
    last_24_hours: int = Field(..., alias="last24Hours")


class StatsResponse(BaseModel):
    success: bool = True
    stats: Stats


def get_store(request: Request) -> ArticleStore:
    return request.app.state.store


def get_ingestor(request: Request) -> FeedIngestor:
    return request.app.state.ingestor


def get_registry(request: Request) -> FeedRegistry:
    return request.app.state.registry


@router.get("/articles", response_model=ArticlesResponse)
async def list_articles(
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
    store: ArticleStore = Depends(get_store),
) -> ArticlesResponse:
    """Return a page of articles, newest first."""

    page_limit, page_offset = validate_pagination(limit, offset)
    articles = store.list_articles(page_limit, page_offset)
    return ArticlesResponse(count=len(articles), total=store.count_total(), articles=articles)


@router.get("/articles/recent", response_model=ArticleListResponse)
async def list_recent_articles(
    hours: str | None = Query(default=None),
    store: ArticleStore = Depends(get_store),
) -> ArticleListResponse:
    """Return articles published within the last ``hours`` hours."""

    articles = store.list_recent(validate_hours(hours))
    return ArticleListResponse(count=len(articles), articles=articles)


@router.get("/articles/source/{source}", response_model=ArticleListResponse)
async def list_articles_by_source(
    source: str,
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
    store: ArticleStore = Depends(get_store),
    registry: FeedRegistry = Depends(get_registry),
) -> ArticleListResponse:
    """Return a page of articles from one configured source."""

    valid_sources = registry.sources
    validated = validate_source(source, valid_sources)
    if validated is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid source. Valid sources: {', '.join(valid_sources)}",
        )

    page_limit, page_offset = validate_pagination(limit, offset)
    articles = store.list_by_source(validated, page_limit, page_offset)
    return ArticleListResponse(count=len(articles), articles=articles)


@router.get("/sources", response_model=SourcesResponse)
async def list_sources(store: ArticleStore = Depends(get_store)) -> SourcesResponse:
    """Return article counts per source."""

    return SourcesResponse(sources=store.group_by_source())


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    dependencies=[Depends(enforce_refresh_rate_limit)],
)
async def refresh_feeds(ingestor: FeedIngestor = Depends(get_ingestor)) -> RefreshResponse:
    """Run a full ingestion pass and report how many articles were new."""

    logger.info("Manual refresh requested")
    new_articles = await ingestor.fetch_all_feeds()
    return RefreshResponse(
        message=f"Fetched {new_articles} new articles",
        new_articles=new_articles,
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(store: ArticleStore = Depends(get_store)) -> StatsResponse:
    """Return aggregate article statistics."""

    stats = Stats(
        total_articles=store.count_total(),
        sources=store.group_by_source(),
        last_24_hours=len(store.list_recent(24)),
    )
    return StatsResponse(stats=stats)
