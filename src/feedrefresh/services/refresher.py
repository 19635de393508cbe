"""Feed refresh coordination.

Drives one download per feed, filters out content that did not change,
forwards real changes downstream and reports once when a whole refresh,
including delayed rate-limited batches, has finished.
"""

import asyncio
from typing import Any, Callable, Iterable

import httpx
import structlog

from feedrefresh.batching import Batch, BatchScheduler
from feedrefresh.completion import CompletionAggregator
from feedrefresh.delta import (
    content_hash,
    derive_next_metadata,
    has_changed,
    is_definitely_not_feed,
)
from feedrefresh.exceptions import (
    ContentError,
    FeedRefreshError,
    NotificationError,
    RefreshInProgressError,
    TransportError,
)
from feedrefresh.models.article import ArticleChanges
from feedrefresh.models.feed import Feed, FeedOutcome, RefreshRequest
from feedrefresh.notifiers.base import SyncNotifier
from feedrefresh.parsers.base import FeedParser
from feedrefresh.storage.base import FeedStorage
from feedrefresh.transport.base import DownloadSession, DownloadSessionDelegate
from feedrefresh.transport.http import HttpDownloadSession

logger = structlog.get_logger()

SessionFactory = Callable[[DownloadSessionDelegate], DownloadSession]
FeedCompletedCallback = Callable[[Feed, FeedOutcome], None]


class FeedRefresher:
    """Coordinates a refresh of many feeds.

    Every feed of a refresh ends in exactly one "feed request completed"
    notification and exactly one resolution of the pending-work counter,
    whatever happened to it. All delegate callbacks run on the event loop.
    """

    def __init__(
        self,
        parser: FeedParser,
        storage: FeedStorage,
        notifier: SyncNotifier,
        batch_scheduler: BatchScheduler | None = None,
        session_factory: SessionFactory | None = None,
        on_feed_completed: FeedCompletedCallback | None = None,
    ):
        """Initialize feed refresher.

        Args:
            parser: Turns downloaded bytes into a structured feed.
            storage: Reconciles parsed feeds with stored articles.
            notifier: Receives article changes; awaited before a feed resolves.
            batch_scheduler: Rate-limit partitioning and delayed dispatch.
            session_factory: Builds the download session for this refresher.
            on_feed_completed: Called once per feed with its outcome.
        """
        self._parser = parser
        self._storage = storage
        self._notifier = notifier
        self._batch_scheduler = batch_scheduler or BatchScheduler()
        self._session = (session_factory or HttpDownloadSession)(self)
        self._on_feed_completed = on_feed_completed
        self._completion = CompletionAggregator()
        self._suspended = False
        self._request: RefreshRequest | None = None

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    @property
    def is_refreshing(self) -> bool:
        return self._completion.is_active

    @property
    def pending(self) -> int:
        """Outstanding fetch units of the active refresh."""
        return self._completion.pending

    def refresh(
        self,
        feeds: Iterable[Feed],
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        """Start refreshing ``feeds``.

        ``on_complete`` fires exactly once, after every immediate download
        and every rate-limited batch has resolved. With no feeds it fires
        before this method returns.

        Raises:
            RefreshInProgressError: If a previous refresh is still running.
        """
        request = RefreshRequest.from_feeds(feeds)
        if not request.feeds:
            if on_complete is not None:
                on_complete()
            return

        if self._completion.is_active:
            raise RefreshInProgressError("A refresh is already in progress")

        immediate, groups = self._batch_scheduler.partition(request.feeds)
        batches = self._batch_scheduler.plan(groups)

        self._request = request
        self._completion.start(lambda: self._finish(request, on_complete))
        # Scheduled batches count as one unit each until they are dispatched
        self._completion.register(len(immediate) + len(batches))

        logger.info(
            "Refresh started",
            feed_count=len(request),
            immediate=len(immediate),
            batches=len(batches),
        )

        if immediate:
            self._session.download(immediate)
        self._batch_scheduler.schedule(batches, self._dispatch_batch)

    async def refresh_and_wait(self, feeds: Iterable[Feed]) -> None:
        """Refresh ``feeds`` and return once the refresh has completed."""
        done = asyncio.get_running_loop().create_future()

        def on_complete() -> None:
            if not done.done():
                done.set_result(None)

        self.refresh(feeds, on_complete)
        await done

    def suspend(self) -> None:
        """Stop side effects of in-flight and future downloads.

        Downloads still on the network are cancelled and resolved as skipped
        on the next loop iteration. Armed batch timers keep running; their
        downloads observe the flag and resolve without side effects.

        Must be called from the event loop the refresher runs on.
        """
        loop = asyncio.get_running_loop()
        self._suspended = True
        cancelled = self._session.cancel_all()
        logger.info("Refresher suspended", cancelled=len(cancelled))

        if cancelled:
            loop.call_soon(self._resolve_cancelled, cancelled)

    def resume(self) -> None:
        """Allow side effects again. Cancelled work is not restarted."""
        self._suspended = False
        logger.info("Refresher resumed")

    async def aclose(self) -> None:
        """Release the download session."""
        await self._session.aclose()

    # Download session delegate

    def request_for(self, item: Any) -> httpx.Request | None:
        feed: Feed = item
        headers = {}
        if feed.conditional_get_info is not None:
            headers = feed.conditional_get_info.request_headers()

        try:
            return httpx.Request("GET", feed.url, headers=headers)
        except (httpx.InvalidURL, ValueError) as e:
            logger.warning("Cannot build feed request", feed_url=feed.url, error=str(e))
            return None

    def should_continue(self, item: Any, data: bytes) -> bool:
        if self._suspended:
            return False
        if not data:
            return True
        if is_definitely_not_feed(data):
            logger.info("Aborting download of non-feed content", feed_url=item.url)
            return False
        return True

    async def download_did_complete(
        self,
        item: Any,
        response: httpx.Response | None,
        data: bytes,
        error: Exception | None,
    ) -> None:
        log = logger.bind(feed_url=item.url)
        try:
            try:
                outcome, changes = await self._process_download(item, response, data, error)
            except FeedRefreshError as e:
                log.warning("Feed refresh failed", error_kind=type(e).__name__, error=str(e))
                outcome, changes = FeedOutcome.FAILED, None
            except Exception:
                log.exception("Unexpected error while processing feed")
                outcome, changes = FeedOutcome.FAILED, None

            self._request_completed(item, outcome)
            if changes is not None:
                await self._sync(item, changes)
        finally:
            self._completion.resolve()

    def did_receive_unexpected_response(self, item: Any, response: httpx.Response) -> None:
        self._finish_feed(item, FeedOutcome.FAILED)

    def did_receive_not_modified_response(self, item: Any, response: httpx.Response) -> None:
        logger.debug("Feed not modified", feed_url=item.url)
        self._finish_feed(item, FeedOutcome.NOT_MODIFIED)

    def did_discard_duplicate(self, item: Any) -> None:
        self._finish_feed(item, FeedOutcome.SKIPPED)

    def download_session_did_complete(self) -> None:
        logger.debug("Download session idle", pending=self._completion.pending)

    # Internals

    async def _process_download(
        self,
        feed: Feed,
        response: httpx.Response | None,
        data: bytes,
        error: Exception | None,
    ) -> tuple[FeedOutcome, ArticleChanges | None]:
        """Run delta detection, parsing and storage for one download.

        Returns the feed's outcome and, for changed feeds, the article
        changes to sync. Per-feed failures are raised as FeedRefreshError.
        """
        if self._suspended:
            return FeedOutcome.SKIPPED, None

        if error is not None:
            if isinstance(error, FeedRefreshError):
                raise error
            raise TransportError(feed.url, str(error))

        if not data:
            raise ContentError(feed.url, "empty response body")

        # Servers that ignore validators still send identical bodies
        if not has_changed(data, feed.content_hash):
            logger.debug("Feed content unchanged", feed_url=feed.url)
            return FeedOutcome.UNCHANGED, None

        if is_definitely_not_feed(data):
            raise ContentError(feed.url, "content is an image, not a feed")

        parsed = await self._parser.parse(feed.url, data)

        if self._suspended:
            return FeedOutcome.SKIPPED, None

        changes = await self._storage.update(feed, parsed)

        if response is not None:
            feed.conditional_get_info = derive_next_metadata(response)
        feed.content_hash = content_hash(data)
        return FeedOutcome.CHANGED, changes

    async def _sync(self, feed: Feed, changes: ArticleChanges) -> None:
        try:
            await self._notifier.notify(changes)
        except NotificationError as e:
            logger.warning("Sync notification failed", feed_url=feed.url, error=str(e))
        except Exception:
            logger.exception("Sync notifier raised", feed_url=feed.url)

    def _dispatch_batch(self, batch: Batch) -> None:
        self._completion.register(len(batch.feeds))
        try:
            self._session.download(batch.feeds)
        finally:
            self._completion.resolve()

    def _resolve_cancelled(self, feeds: list[Feed]) -> None:
        for feed in feeds:
            self._finish_feed(feed, FeedOutcome.SKIPPED)

    def _finish_feed(self, feed: Feed, outcome: FeedOutcome) -> None:
        try:
            self._request_completed(feed, outcome)
        finally:
            self._completion.resolve()

    def _request_completed(self, feed: Feed, outcome: FeedOutcome) -> None:
        if self._on_feed_completed is not None:
            self._on_feed_completed(feed, outcome)

    def _finish(self, request: RefreshRequest, on_complete: Callable[[], None] | None) -> None:
        if self._request is request:
            self._request = None
        logger.info(
            "Refresh finished",
            feed_count=len(request),
            submitted_at=request.submitted_at.isoformat(),
        )
        if on_complete is not None:
            on_complete()
