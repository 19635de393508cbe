"""Custom exceptions for feedrefresh.

Provides a structured exception hierarchy for the per-feed failure kinds.
Every per-feed error is absorbed by the refresher as a no-change outcome.
"""


class FeedRefreshError(Exception):
    """Base exception class for all feedrefresh errors."""

    pass


class TransportError(FeedRefreshError):
    """Raised when a feed download fails or its request cannot be built.

    Attributes:
        url: The feed URL that failed.
    """

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to download {url}: {message}")


class ContentError(FeedRefreshError):
    """Raised when downloaded content is empty or clearly not a feed.

    Also used when a download is aborted after inspecting its first bytes.

    Attributes:
        url: The feed URL with unusable content.
    """

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Unusable content from {url}: {message}")


class ParseError(FeedRefreshError):
    """Raised when feed content parsing fails.

    Attributes:
        url: The feed URL with parse error.
    """

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to parse {url}: {message}")


class StorageError(FeedRefreshError):
    """Raised when reconciling a feed against storage fails."""

    pass


class NotificationError(FeedRefreshError):
    """Raised when the sync notification for article changes fails.

    Attributes:
        channel: The notification channel that failed.
    """

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(f"Sync notification failed via {channel}: {message}")


class RefreshInProgressError(FeedRefreshError):
    """Raised when a refresh is submitted while another one is still active."""

    pass
