"""Storage package."""

from feedrefresh.storage.base import FeedStorage
from feedrefresh.storage.sqlite import SQLiteFeedStorage

__all__ = [
    "FeedStorage",
    "SQLiteFeedStorage",
]
