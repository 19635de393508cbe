"""Models package."""

from feedrefresh.models.article import Article, ArticleChanges, ParsedFeed, ParsedItem
from feedrefresh.models.feed import (
    ConditionalGetInfo,
    Feed,
    FeedOutcome,
    RefreshRequest,
    unique_feeds,
)

__all__ = [
    "Article",
    "ArticleChanges",
    "ConditionalGetInfo",
    "Feed",
    "FeedOutcome",
    "ParsedFeed",
    "ParsedItem",
    "RefreshRequest",
    "unique_feeds",
]
