"""httpx-backed download session."""

import asyncio
from typing import Any, Iterable

import httpx
import structlog

from feedrefresh.exceptions import ContentError, TransportError
from feedrefresh.transport.base import DownloadSessionDelegate
from feedrefresh.utils.http_client import create_http_client

logger = structlog.get_logger()

# Leading bytes handed to ``should_continue`` on each chunk
SNIFF_BYTES = 1024


class HttpDownloadSession:
    """Streams downloads concurrently and reports them to a delegate.

    Each download is in its network phase until the response body has been
    read (or the transfer failed). Only tasks in that phase are cancelled by
    ``cancel_all``; once delivery to the delegate has begun it runs to the end.
    """

    def __init__(
        self,
        delegate: DownloadSessionDelegate,
        client: httpx.AsyncClient | None = None,
        max_concurrent: int = 10,
        timeout: int = 30,
        user_agent: str = "feedrefresh/0.1",
    ):
        """Initialize download session.

        Args:
            delegate: Receiver of per-item callbacks.
            client: HTTP client to use. Defaults to a session-owned client.
            max_concurrent: Maximum simultaneous HTTP requests.
            timeout: Request timeout for a session-owned client.
            user_agent: User-Agent for a session-owned client.
        """
        self._delegate = delegate
        self._client = client or create_http_client(timeout=timeout, user_agent=user_agent)
        self._owns_client = client is None
        self._semaphore = asyncio.Semaphore(max_concurrent)
        # task -> (item, url) while the download is cancellable
        self._network: dict[asyncio.Task, tuple[Any, str | None]] = {}
        self._urls_in_flight: set[str] = set()
        self._live: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of items still awaiting their terminal callback."""
        return len(self._live)

    def download(self, items: Iterable[Any]) -> None:
        loop = asyncio.get_running_loop()
        for item in items:
            try:
                request = self._delegate.request_for(item)
            except Exception:
                logger.exception("Building request failed", item=repr(item))
                request = None
            if request is None:
                self._start(loop, item, None, self._complete_without_request(item))
                continue

            url = str(request.url)
            if url in self._urls_in_flight:
                logger.debug("Discarding duplicate download", url=url)
                self._delegate.did_discard_duplicate(item)
                continue

            self._urls_in_flight.add(url)
            self._start(loop, item, url, self._download(item, request))

    def cancel_all(self) -> list[Any]:
        cancelled = []
        for task, (item, url) in self._network.items():
            task.cancel()
            self._live.discard(task)
            if url is not None:
                self._urls_in_flight.discard(url)
            cancelled.append(item)
        self._network.clear()

        if cancelled:
            logger.info("Cancelled in-flight downloads", count=len(cancelled))
        return cancelled

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _start(self, loop: asyncio.AbstractEventLoop, item: Any, url: str | None, coro) -> None:
        task = loop.create_task(coro)
        self._network[task] = (item, url)
        self._live.add(task)
        task.add_done_callback(self._task_done)

    def _leave_network_phase(self) -> None:
        task = asyncio.current_task()
        _, url = self._network.pop(task, (None, None))
        if url is not None:
            self._urls_in_flight.discard(url)

    def _task_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Download handler raised",
                error=repr(task.exception()),
            )
        if task in self._live:
            self._live.discard(task)
            if not self._live:
                self._delegate.download_session_did_complete()

    async def _complete_without_request(self, item: Any) -> None:
        self._leave_network_phase()
        error = TransportError(repr(item), "no request could be built")
        await self._delegate.download_did_complete(item, None, b"", error)

    async def _download(self, item: Any, request: httpx.Request) -> None:
        url = str(request.url)
        response: httpx.Response | None = None
        data = bytearray()
        error: Exception | None = None
        status_kind = "complete"

        try:
            async with self._semaphore:
                outgoing = self._client.build_request(
                    request.method, request.url, headers=request.headers
                )
                response = await self._client.send(outgoing, stream=True)
                try:
                    if response.status_code == 304:
                        status_kind = "not_modified"
                    elif not response.is_success:
                        status_kind = "unexpected"
                    else:
                        async for chunk in response.aiter_bytes():
                            data.extend(chunk)
                            head = bytes(data[:SNIFF_BYTES])
                            if not self._delegate.should_continue(item, head):
                                error = ContentError(url, "download aborted after inspecting content")
                                break
                finally:
                    await response.aclose()
        except httpx.HTTPError as e:
            error = TransportError(url, f"Request failed: {e}")
            status_kind = "complete"
        except Exception as e:
            logger.exception("Download failed unexpectedly", url=url)
            error = TransportError(url, f"Unexpected failure: {e!r}")
            status_kind = "complete"

        self._leave_network_phase()

        if status_kind == "not_modified":
            self._delegate.did_receive_not_modified_response(item, response)
        elif status_kind == "unexpected":
            logger.warning("Unexpected response", url=url, status=response.status_code)
            self._delegate.did_receive_unexpected_response(item, response)
        else:
            await self._delegate.download_did_complete(item, response, bytes(data), error)
