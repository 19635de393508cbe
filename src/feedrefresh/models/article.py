"""Parsed feed and article models."""

from datetime import datetime

from pydantic import BaseModel, Field, computed_field


class ParsedItem(BaseModel):
    """A single entry produced by the feed parser."""

    unique_id: str = Field(..., description="Entry id/guid, falls back to link")
    title: str = Field(default="")
    url: str | None = Field(default=None, description="Entry link")
    summary: str = Field(default="")
    published_at: datetime | None = Field(default=None)


class ParsedFeed(BaseModel):
    """Structured feed produced from raw bytes by the parser."""

    url: str = Field(..., description="URL the feed was downloaded from")
    title: str | None = Field(default=None)
    home_page_url: str | None = Field(default=None)
    items: list[ParsedItem] = Field(default_factory=list)


class Article(BaseModel):
    """An article as stored for a feed."""

    feed_url: str
    article_id: str
    title: str = ""
    url: str | None = None
    summary: str = ""
    published_at: datetime | None = None
    content_hash: str = Field(..., description="Digest of the stored fields")


class ArticleChanges(BaseModel):
    """Result of reconciling a parsed feed against stored articles."""

    feed_url: str
    new_articles: list[Article] = Field(default_factory=list)
    updated_articles: list[Article] = Field(default_factory=list)

    @computed_field
    @property
    def is_empty(self) -> bool:
        return not self.new_articles and not self.updated_articles
