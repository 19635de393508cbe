"""Download session interfaces using Protocol.

A session downloads opaque items on behalf of a delegate. Every item handed
to ``download`` receives exactly one terminal callback (completion,
unexpected response, not-modified, or duplicate discarded) unless it is
returned by ``cancel_all``, after which nothing more is delivered for it.
"""

from typing import Any, Iterable, Protocol

import httpx


class DownloadSessionDelegate(Protocol):
    """Callbacks a download session drives for each item."""

    def request_for(self, item: Any) -> httpx.Request | None:
        """Build the request for an item, or None if it cannot be fetched."""
        ...

    def should_continue(self, item: Any, data: bytes) -> bool:
        """Inspect the leading bytes received so far; False aborts the download.

        Called after every chunk. ``data`` is a bounded prefix of the body,
        not the whole buffer.
        """
        ...

    async def download_did_complete(
        self,
        item: Any,
        response: httpx.Response | None,
        data: bytes,
        error: Exception | None,
    ) -> None:
        """Handle a finished download; the session awaits this exactly once."""
        ...

    def did_receive_unexpected_response(self, item: Any, response: httpx.Response) -> None:
        """Handle a non-2xx, non-304 response."""
        ...

    def did_receive_not_modified_response(self, item: Any, response: httpx.Response) -> None:
        """Handle a 304 Not Modified response."""
        ...

    def did_discard_duplicate(self, item: Any) -> None:
        """Handle an item dropped because its URL is already downloading."""
        ...

    def download_session_did_complete(self) -> None:
        """Called when the session has no items left in flight."""
        ...


class DownloadSession(Protocol):
    """Transport that fetches items concurrently."""

    def download(self, items: Iterable[Any]) -> None:
        """Start downloading items. Must be called from a running event loop."""
        ...

    def cancel_all(self) -> list[Any]:
        """Cancel every download still in the network phase.

        Returns:
            The cancelled items. No further callbacks are made for them.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
