"""Rate-limited batch scheduling.

Feeds hosted by providers that enforce a request-count-per-window policy are
split into fixed-size batches and dispatched with increasing delays, while
all other feeds are fetched immediately.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Sequence

import structlog

from feedrefresh.models.feed import Feed

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitPolicy:
    """Throttling policy for one rate-limited host class.

    Attributes:
        host_pattern: Substring identifying the host (e.g. "reddit.com").
        batch_size: Maximum feeds per batch.
        delay_per_batch: Seconds between consecutive batches.
    """

    host_pattern: str
    batch_size: int = 100
    delay_per_batch: float = 601.0  # 100 requests per 10 minutes

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.delay_per_batch < 0:
            raise ValueError(f"delay_per_batch must be non-negative, got {self.delay_per_batch}")

    def matches(self, feed: Feed) -> bool:
        host_url = feed.home_page_url or feed.url
        return self.host_pattern in host_url


DEFAULT_POLICIES: tuple[RateLimitPolicy, ...] = (RateLimitPolicy(host_pattern="reddit.com"),)


@dataclass(frozen=True)
class Batch:
    """A slice of rate-limited feeds and its dispatch delay."""

    index: int
    delay: float
    feeds: tuple[Feed, ...]
    host: str


class BatchScheduler:
    """Partitions feeds and drives delayed batch dispatch.

    Reason: A single timer task walking an explicit queue keeps large feed
    sets free of recursion and never holds a download slot while waiting.
    """

    def __init__(
        self,
        policies: Sequence[RateLimitPolicy] = DEFAULT_POLICIES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize batch scheduler.

        Args:
            policies: Rate-limit policies, checked in order.
            clock: Monotonic clock used to measure delays.
            sleep: Non-blocking sleep coroutine function.
        """
        self._policies = tuple(policies)
        self._clock = clock
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()

    @property
    def policies(self) -> tuple[RateLimitPolicy, ...]:
        return self._policies

    def partition(self, feeds: Iterable[Feed]) -> tuple[list[Feed], list[list[Feed]]]:
        """Split feeds into an immediate group and one group per policy.

        Returns:
            (immediate feeds, rate-limited groups in policy order). Groups
            may be empty; input order is preserved inside each group.
        """
        immediate: list[Feed] = []
        groups: list[list[Feed]] = [[] for _ in self._policies]

        for feed in feeds:
            for position, policy in enumerate(self._policies):
                if policy.matches(feed):
                    groups[position].append(feed)
                    break
            else:
                immediate.append(feed)

        return immediate, groups

    def plan(self, groups: Sequence[Sequence[Feed]]) -> list[Batch]:
        """Slice rate-limited groups into batches ordered by dispatch delay."""
        batches: list[Batch] = []
        for policy, group in zip(self._policies, groups):
            for index, start in enumerate(range(0, len(group), policy.batch_size)):
                batches.append(
                    Batch(
                        index=index,
                        delay=index * policy.delay_per_batch,
                        feeds=tuple(group[start : start + policy.batch_size]),
                        host=policy.host_pattern,
                    )
                )
        batches.sort(key=lambda b: b.delay)
        return batches

    def schedule(
        self,
        batches: Sequence[Batch],
        dispatch: Callable[[Batch], None],
    ) -> asyncio.Task | None:
        """Arm the timer loop that dispatches each batch after its delay.

        Delays are measured from this call. Must be called from a running
        event loop.

        Returns:
            The timer task, or None if there is nothing to schedule.
        """
        if not batches:
            return None

        queue = [(batch, batch.delay) for batch in sorted(batches, key=lambda b: b.delay)]
        task = asyncio.get_running_loop().create_task(
            self._run(queue, self._clock(), dispatch)
        )
        # Keep a strong reference until the loop finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(
            "Batches scheduled",
            batch_count=len(queue),
            last_delay=queue[-1][1],
        )
        return task

    async def _run(
        self,
        queue: list[tuple[Batch, float]],
        submitted_at: float,
        dispatch: Callable[[Batch], None],
    ) -> None:
        for batch, delay in queue:
            remaining = submitted_at + delay - self._clock()
            if remaining > 0:
                await self._sleep(remaining)
            logger.info(
                "Dispatching batch",
                host=batch.host,
                batch_index=batch.index,
                feed_count=len(batch.feeds),
            )
            try:
                dispatch(batch)
            except Exception:
                # Later batches still have to go out
                logger.exception("Batch dispatch failed", batch_index=batch.index)
