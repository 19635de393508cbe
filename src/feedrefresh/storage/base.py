"""Abstract storage interface using Protocol.

Defines the contract for reconciling parsed feeds against stored articles.
"""

from typing import Iterable, Protocol

from feedrefresh.models.article import ArticleChanges, ParsedFeed
from feedrefresh.models.feed import Feed


class FeedStorage(Protocol):
    """Feed/article storage abstraction protocol.

    Reason: Using Protocol instead of ABC lets tests pass plain fakes
    while keeping strict type checking.
    """

    async def initialize(self) -> None:
        """Initialize the storage (create tables, etc.)."""
        ...

    async def update(self, feed: Feed, parsed: ParsedFeed) -> ArticleChanges:
        """Reconcile a parsed feed with the articles stored for it.

        Args:
            feed: The feed that was downloaded.
            parsed: Its freshly parsed content.

        Returns:
            The articles that are new or changed.

        Raises:
            StorageError: When reconciliation fails.
        """
        ...

    async def load_feeds(self, urls: Iterable[str]) -> list[Feed]:
        """Load feeds by URL, creating blank entries for unknown URLs."""
        ...

    async def save_feeds(self, feeds: Iterable[Feed]) -> None:
        """Persist feed metadata (content hash and validators)."""
        ...

    async def close(self) -> None:
        """Close the storage connection."""
        ...
