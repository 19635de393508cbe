"""Services package."""

from feedrefresh.services.refresh_service import RefreshService
from feedrefresh.services.refresher import FeedRefresher

__all__ = [
    "FeedRefresher",
    "RefreshService",
]
