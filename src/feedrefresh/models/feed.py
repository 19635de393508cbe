"""Feed models and refresh bookkeeping types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field


class ConditionalGetInfo(BaseModel):
    """HTTP cache validators captured from a previous response."""

    model_config = ConfigDict(frozen=True)

    etag: str | None = Field(default=None, description="ETag response header")
    last_modified: str | None = Field(default=None, description="Last-Modified response header")

    def request_headers(self) -> dict[str, str]:
        """Return the conditional request headers for these validators.

        Validators that cannot be sent as ASCII header values are left out,
        so the request degrades to an unconditional GET.
        """
        headers: dict[str, str] = {}
        if self.etag and self.etag.isascii():
            headers["If-None-Match"] = self.etag
        if self.last_modified and self.last_modified.isascii():
            headers["If-Modified-Since"] = self.last_modified
        return headers


class Feed(BaseModel):
    """A remote feed source, identified by its URL.

    ``content_hash`` and ``conditional_get_info`` describe the last body that
    was successfully processed; they change only after a changed fetch.
    """

    url: str = Field(..., description="Feed URL")
    home_page_url: str | None = Field(default=None, description="Declared site home page")
    name: str | None = Field(default=None, description="Human-readable name")
    content_hash: str | None = Field(default=None, description="Digest of last processed body")
    conditional_get_info: ConditionalGetInfo | None = Field(default=None)


class FeedOutcome(str, Enum):
    """How a single feed's request finished."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"
    NOT_MODIFIED = "not_modified"
    FAILED = "failed"
    SKIPPED = "skipped"


def unique_feeds(feeds: Iterable[Feed]) -> tuple[Feed, ...]:
    """De-duplicate feeds by URL, keeping first-seen order."""
    seen: dict[str, Feed] = {}
    for feed in feeds:
        seen.setdefault(feed.url, feed)
    return tuple(seen.values())


@dataclass(frozen=True)
class RefreshRequest:
    """Feeds submitted together; one completion callback covers all of them."""

    feeds: tuple[Feed, ...]
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_feeds(cls, feeds: Iterable[Feed]) -> "RefreshRequest":
        return cls(feeds=unique_feeds(feeds))

    def __len__(self) -> int:
        return len(self.feeds)
