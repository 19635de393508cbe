"""Parsers package."""

from feedrefresh.parsers.base import FeedParser
from feedrefresh.parsers.feed_parser import FeedParserAdapter

__all__ = [
    "FeedParser",
    "FeedParserAdapter",
]
