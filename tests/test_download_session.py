"""Tests for the httpx download session."""

import asyncio

import httpx
import pytest
from conftest import SAMPLE_RSS

from feedrefresh.exceptions import ContentError, TransportError
from feedrefresh.transport.http import SNIFF_BYTES, HttpDownloadSession

BASE = "https://feeds.example.com"


class RecordingDelegate:
    """Delegate that records every callback."""

    def __init__(self, abort: bool = False):
        self.abort = abort
        self.completions = []
        self.events = []
        self.inspected = []
        self.idle = asyncio.Event()

    def request_for(self, item):
        if item == "invalid":
            return None
        if item == "explode":
            raise ValueError("cannot encode header")
        return httpx.Request("GET", item, headers={"If-None-Match": '"cached"'})

    def should_continue(self, item, data):
        self.inspected.append(len(data))
        return not self.abort

    async def download_did_complete(self, item, response, data, error):
        self.completions.append((item, response, data, error))

    def did_receive_unexpected_response(self, item, response):
        self.events.append(("unexpected", item, response.status_code))

    def did_receive_not_modified_response(self, item, response):
        self.events.append(("not_modified", item))

    def did_discard_duplicate(self, item):
        self.events.append(("duplicate", item))

    def download_session_did_complete(self):
        self.idle.set()


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/feed":
        return httpx.Response(200, content=SAMPLE_RSS, headers={"ETag": '"1"'})
    if request.url.path == "/not-modified":
        return httpx.Response(304)
    if request.url.path == "/down":
        raise httpx.ConnectError("connection refused", request=request)
    if request.url.path == "/crash":
        raise RuntimeError("handler bug")
    return httpx.Response(500)


@pytest.fixture
def seen_requests():
    return []


@pytest.fixture
def client(seen_requests):
    def recording_handler(request):
        seen_requests.append(request)
        return handler(request)

    return httpx.AsyncClient(
        transport=httpx.MockTransport(recording_handler),
        headers={"User-Agent": "feedrefresh-test"},
    )


async def run(session: HttpDownloadSession, delegate: RecordingDelegate, items) -> None:
    session.download(items)
    await asyncio.wait_for(delegate.idle.wait(), 2.0)


class TestHttpDownloadSession:
    @pytest.mark.asyncio
    async def test_successful_download_delivers_body(self, client, seen_requests):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/feed"])

        [(item, response, data, error)] = delegate.completions
        assert item == f"{BASE}/feed"
        assert response.headers["ETag"] == '"1"'
        assert data == SAMPLE_RSS
        assert error is None
        assert seen_requests[0].headers["If-None-Match"] == '"cached"'
        assert seen_requests[0].headers["User-Agent"] == "feedrefresh-test"
        assert session.in_flight == 0

    @pytest.mark.asyncio
    async def test_status_codes_route_to_their_callbacks(self, client):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/not-modified", f"{BASE}/missing"])

        assert sorted(delegate.events) == [
            ("not_modified", f"{BASE}/not-modified"),
            ("unexpected", f"{BASE}/missing", 500),
        ]
        assert delegate.completions == []

    @pytest.mark.asyncio
    async def test_network_failure_completes_with_error(self, client):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/down"])

        [(_, response, data, error)] = delegate.completions
        assert response is None
        assert data == b""
        assert isinstance(error, TransportError)

    @pytest.mark.asyncio
    async def test_delegate_can_abort_after_first_chunk(self, client):
        delegate = RecordingDelegate(abort=True)
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/feed"])

        [(_, _, data, error)] = delegate.completions
        assert isinstance(error, ContentError)
        assert data.startswith(b"<?xml")

    @pytest.mark.asyncio
    async def test_duplicate_urls_are_discarded(self, client, seen_requests):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/feed", f"{BASE}/feed"])

        assert delegate.events == [("duplicate", f"{BASE}/feed")]
        assert len(delegate.completions) == 1
        assert len(seen_requests) == 1

    @pytest.mark.asyncio
    async def test_missing_request_completes_with_error(self, client):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, ["invalid"])

        [(item, response, _, error)] = delegate.completions
        assert item == "invalid"
        assert response is None
        assert isinstance(error, TransportError)

    @pytest.mark.asyncio
    async def test_unexpected_exception_completes_with_error(self, client):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/crash", f"{BASE}/feed"])

        errors = {item: error for item, _, _, error in delegate.completions}
        assert isinstance(errors[f"{BASE}/crash"], TransportError)
        assert errors[f"{BASE}/feed"] is None
        assert session.in_flight == 0

    @pytest.mark.asyncio
    async def test_failing_request_builder_completes_with_error(self, client, seen_requests):
        delegate = RecordingDelegate()
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, ["explode", f"{BASE}/feed"])

        errors = {item: error for item, _, _, error in delegate.completions}
        assert isinstance(errors["explode"], TransportError)
        assert errors[f"{BASE}/feed"] is None
        assert len(seen_requests) == 1

    @pytest.mark.asyncio
    async def test_content_inspection_sees_bounded_prefix(self):
        chunk = b"<rss>" + b"x" * 4091

        async def body():
            for _ in range(64):
                yield chunk

        delegate = RecordingDelegate()
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=body()))
        )
        session = HttpDownloadSession(delegate, client=client)

        await run(session, delegate, [f"{BASE}/large"])

        [(_, _, data, error)] = delegate.completions
        assert error is None
        assert len(data) == 64 * len(chunk)
        assert delegate.inspected
        assert max(delegate.inspected) <= SNIFF_BYTES
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cancel_all_stops_delivery(self):
        release = asyncio.Event()

        async def slow_handler(request):
            await release.wait()
            return httpx.Response(200, content=SAMPLE_RSS)

        delegate = RecordingDelegate()
        client = httpx.AsyncClient(transport=httpx.MockTransport(slow_handler))
        session = HttpDownloadSession(delegate, client=client)

        session.download([f"{BASE}/slow"])
        await asyncio.sleep(0.01)
        cancelled = session.cancel_all()
        release.set()
        await asyncio.sleep(0.05)

        assert cancelled == [f"{BASE}/slow"]
        assert session.in_flight == 0
        assert delegate.completions == []
        await client.aclose()
