"""Domain models used across the application."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Article(BaseModel):
    """A normalised, deduplicated article as stored and served."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: Optional[int] = None
    title: str
    link: str
    description: str = ""
    pub_date: datetime = Field(..., alias="pubDate")
    source: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class SourceCount(BaseModel):
    """Number of stored articles for one source."""

    source: str
    count: int
