"""RSS and Atom parser built on feedparser."""

import asyncio
import re
from datetime import datetime

import feedparser

from feedrefresh.exceptions import ParseError
from feedrefresh.models.article import ParsedFeed, ParsedItem


class FeedParserAdapter:
    """Parses RSS and Atom bodies with feedparser.

    Reason: feedparser is synchronous and CPU-bound, so parsing runs in a
    worker thread to keep the event loop free for downloads.
    """

    async def parse(self, url: str, data: bytes) -> ParsedFeed:
        return await asyncio.to_thread(self.parse_sync, url, data)

    def parse_sync(self, url: str, data: bytes) -> ParsedFeed:
        """Parse synchronously.

        Raises:
            ParseError: When the body is not a readable feed.
        """
        try:
            parsed = feedparser.parse(data)

            # feedparser sets bozo=1 for any parse issues
            if parsed.bozo and not parsed.entries:
                raise ParseError(url, f"Feed parse error: {parsed.bozo_exception}")
            if not parsed.version and not parsed.entries:
                raise ParseError(url, "Unrecognized feed format")

            channel = parsed.feed
            items = [item for item in (self._parse_entry(e) for e in parsed.entries) if item]

            return ParsedFeed(
                url=url,
                title=self._clean_text(channel.get("title", "")) or None,
                home_page_url=channel.get("link"),
                items=items,
            )

        except ParseError:
            raise
        except Exception as e:
            raise ParseError(url, f"Unexpected parse error: {e}") from e

    def _parse_entry(self, entry: feedparser.FeedParserDict) -> ParsedItem | None:
        link = entry.get("link")
        unique_id = entry.get("id") or entry.get("guid") or link
        if not unique_id:
            return None

        return ParsedItem(
            unique_id=unique_id,
            title=self._clean_text(entry.get("title", "")),
            url=link,
            summary=self._clean_text(entry.get("summary", entry.get("description", ""))),
            published_at=self._parse_date(entry),
        )

    def _parse_date(self, entry: feedparser.FeedParserDict) -> datetime | None:
        for key in ("published_parsed", "updated_parsed"):
            value = entry.get(key)
            if value:
                try:
                    return datetime(*value[:6])
                except (ValueError, TypeError):
                    continue
        return None

    def _clean_text(self, text: str) -> str:
        """Normalize whitespace."""
        return re.sub(r"\s+", " ", text).strip()
