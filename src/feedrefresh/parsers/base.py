"""Abstract feed parser interface using Protocol."""

from typing import Protocol

from feedrefresh.models.article import ParsedFeed


class FeedParser(Protocol):
    """Feed parser abstraction protocol."""

    async def parse(self, url: str, data: bytes) -> ParsedFeed:
        """Parse a raw feed body into a structured feed.

        Args:
            url: URL the body was downloaded from.
            data: Raw response body.

        Returns:
            The parsed feed.

        Raises:
            ParseError: When parsing fails.
        """
        ...
