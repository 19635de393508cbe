"""Multi-notifier that forwards changes to several notifiers at once."""

import asyncio

import structlog

from feedrefresh.exceptions import NotificationError
from feedrefresh.models.article import ArticleChanges
from feedrefresh.notifiers.base import SyncNotifier

logger = structlog.get_logger()


class MultiNotifier:
    """Notifier that fans out to multiple notifiers.

    Reason: Lets the refresher feed several downstream consumers without
    knowing about them.
    """

    def __init__(self, notifiers: list[SyncNotifier]):
        """Initialize multi-notifier.

        Args:
            notifiers: Notifier instances to forward to.
        """
        self._notifiers = notifiers

    async def notify(self, changes: ArticleChanges) -> None:
        """Forward changes to all notifiers concurrently.

        Raises:
            NotificationError: If every notifier failed.
        """
        if not self._notifiers:
            return

        results = await asyncio.gather(
            *[n.notify(changes) for n in self._notifiers],
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        for e in failures:
            logger.warning("Notifier failed", feed_url=changes.feed_url, error=str(e))

        if len(failures) == len(self._notifiers):
            raise NotificationError("multi", f"all {len(failures)} notifiers failed")
