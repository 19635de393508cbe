"""Test configuration and fixtures."""

import asyncio
import tempfile
from pathlib import Path

import httpx
import pytest

from feedrefresh.batching import BatchScheduler, RateLimitPolicy
from feedrefresh.exceptions import ContentError, StorageError, TransportError
from feedrefresh.models.article import ArticleChanges, ParsedFeed
from feedrefresh.models.feed import Feed
from feedrefresh.parsers.feed_parser import FeedParserAdapter
from feedrefresh.services.refresher import FeedRefresher

SAMPLE_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://blog.example.com/</link>
    <description>Posts</description>
    <item>
      <title>First post</title>
      <link>https://blog.example.com/first</link>
      <guid>https://blog.example.com/first</guid>
      <description>Hello   world.</description>
      <pubDate>Thu, 19 Dec 2024 00:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Second post</title>
      <link>https://blog.example.com/second</link>
      <guid>https://blog.example.com/second</guid>
      <description>More text.</description>
    </item>
  </channel>
</rss>"""

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


class FakeDownloadSession:
    """In-memory download session driven by canned responses.

    With ``hold=True`` downloads stay in flight until ``release()``.
    """

    def __init__(self, delegate, responses=None, hold=False, clock=None):
        self.delegate = delegate
        self.responses = responses or {}
        self.hold = hold
        self.clock = clock
        self.batches: list[list[Feed]] = []
        self.download_times: list[float] = []
        self.requests: list[httpx.Request] = []
        self.closed = False
        self._held: list[tuple[Feed, httpx.Request | None]] = []
        self._tasks: set[asyncio.Task] = set()

    def download(self, items):
        items = list(items)
        self.batches.append(items)
        if self.clock is not None:
            self.download_times.append(self.clock.now)
        for item in items:
            request = self.delegate.request_for(item)
            self.requests.append(request)
            if self.hold:
                self._held.append((item, request))
            else:
                self._start(item, request)

    def release(self):
        held, self._held = self._held, []
        for item, request in held:
            self._start(item, request)

    def cancel_all(self):
        cancelled, self._held = self._held, []
        return [item for item, _ in cancelled]

    async def aclose(self):
        self.closed = True

    def _start(self, item, request):
        task = asyncio.get_running_loop().create_task(self._deliver(item, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, item, request):
        await asyncio.sleep(0)
        if request is None:
            error = TransportError(item.url, "no request could be built")
            await self.delegate.download_did_complete(item, None, b"", error)
            return
        response = self.responses.get(item.url)
        if response is None:
            response = httpx.Response(404)
        if isinstance(response, Exception):
            # Transport failure after part of the body arrived
            await self.delegate.download_did_complete(item, None, b"<rss", response)
        elif response.status_code == 304:
            self.delegate.did_receive_not_modified_response(item, response)
        elif not response.is_success:
            self.delegate.did_receive_unexpected_response(item, response)
        else:
            data = response.content
            if not self.delegate.should_continue(item, data):
                error = ContentError(item.url, "aborted")
            else:
                error = None
            await self.delegate.download_did_complete(item, response, data, error)


class RecordingStorage:
    """Storage fake that records calls and reports every item as new."""

    def __init__(self, fail=False):
        self.fail = fail
        self.updates: list[tuple[Feed, ParsedFeed]] = []
        self.saved: list[Feed] = []

    async def initialize(self):
        pass

    async def update(self, feed, parsed):
        self.updates.append((feed, parsed))
        if self.fail:
            raise StorageError("disk full")
        return ArticleChanges(feed_url=feed.url)

    async def load_feeds(self, urls):
        return [Feed(url=url) for url in urls]

    async def save_feeds(self, feeds):
        self.saved.extend(feeds)

    async def close(self):
        pass


class RecordingNotifier:
    """Notifier fake; with a gate, ``notify`` waits until the gate opens."""

    def __init__(self, gate: asyncio.Event | None = None):
        self.gate = gate
        self.calls: list[ArticleChanges] = []
        self.finished = 0

    async def notify(self, changes):
        self.calls.append(changes)
        if self.gate is not None:
            await self.gate.wait()
        self.finished += 1


class FakeClock:
    """Clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def rss_response(body: bytes = SAMPLE_RSS, **headers) -> httpx.Response:
    return httpx.Response(200, content=body, headers=headers)


@pytest.fixture
def temp_db_path():
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def sample_rss_content() -> bytes:
    """Sample RSS 2.0 feed body."""
    return SAMPLE_RSS


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_refresher(fake_clock):
    """Build a refresher wired to fakes.

    Returns a factory producing (refresher, session, storage, notifier, outcomes).
    """

    def factory(
        responses=None,
        hold=False,
        storage=None,
        notifier=None,
        parser=None,
        policies=(RateLimitPolicy(host_pattern="reddit.com"),),
        batch_scheduler=None,
    ):
        sessions = []
        outcomes = []
        storage = storage or RecordingStorage()
        notifier = notifier or RecordingNotifier()

        def session_factory(delegate):
            session = FakeDownloadSession(delegate, responses, hold=hold, clock=fake_clock)
            sessions.append(session)
            return session

        refresher = FeedRefresher(
            parser=parser or FeedParserAdapter(),
            storage=storage,
            notifier=notifier,
            batch_scheduler=batch_scheduler
            or BatchScheduler(policies=policies, clock=fake_clock, sleep=fake_clock.sleep),
            session_factory=session_factory,
            on_feed_completed=lambda feed, outcome: outcomes.append((feed.url, outcome)),
        )
        return refresher, sessions[0], storage, notifier, outcomes

    return factory
