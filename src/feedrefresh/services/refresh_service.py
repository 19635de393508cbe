"""Refresh service - application-level orchestration.

Loads feeds from storage, runs one refresh through the refresher and saves
the updated feed metadata for the next conditional GET.
"""

from collections import Counter
from typing import Sequence

import structlog

from feedrefresh.batching import BatchScheduler
from feedrefresh.models.feed import Feed, FeedOutcome
from feedrefresh.notifiers.base import SyncNotifier
from feedrefresh.parsers.base import FeedParser
from feedrefresh.services.refresher import FeedRefresher, SessionFactory
from feedrefresh.storage.base import FeedStorage

logger = structlog.get_logger()


class RefreshService:
    """Feed refresh service.

    Reason: Acts as Facade pattern, wiring storage, parser and notifier
    into the refresher and reporting per-run statistics.
    """

    def __init__(
        self,
        feed_urls: Sequence[str],
        parser: FeedParser,
        storage: FeedStorage,
        notifier: SyncNotifier,
        batch_scheduler: BatchScheduler | None = None,
        session_factory: SessionFactory | None = None,
    ):
        """Initialize refresh service.

        Args:
            feed_urls: URLs of the feeds to refresh on every run.
            parser: Feed parser instance.
            storage: Feed storage instance.
            notifier: Receiver of article changes.
            batch_scheduler: Optional batch scheduler override.
            session_factory: Optional download session factory override.
        """
        self._feed_urls = list(feed_urls)
        self._storage = storage
        self._outcomes: Counter[FeedOutcome] = Counter()
        self._refresher = FeedRefresher(
            parser=parser,
            storage=storage,
            notifier=notifier,
            batch_scheduler=batch_scheduler,
            session_factory=session_factory,
            on_feed_completed=self._record_outcome,
        )

    @property
    def refresher(self) -> FeedRefresher:
        return self._refresher

    async def run_refresh(self) -> dict:
        """Refresh all configured feeds once.

        Returns:
            dict: Feed count and the number of feeds per outcome.
        """
        log = logger.bind(job="refresh")
        feeds = await self._storage.load_feeds(self._feed_urls)
        log.info("Starting refresh", feed_count=len(feeds))

        self._outcomes = Counter()
        await self._refresher.refresh_and_wait(feeds)
        await self._storage.save_feeds(feeds)

        stats = {"feeds": len(feeds)}
        stats.update({outcome.value: self._outcomes[outcome] for outcome in FeedOutcome})
        log.info("Refresh completed", **stats)
        return stats

    def suspend(self) -> None:
        self._refresher.suspend()

    def resume(self) -> None:
        self._refresher.resume()

    async def close(self) -> None:
        await self._refresher.aclose()
        await self._storage.close()

    def _record_outcome(self, feed: Feed, outcome: FeedOutcome) -> None:
        self._outcomes[outcome] += 1
