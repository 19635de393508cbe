"""Main application entry point.

Wires the refresh service from settings and either runs one refresh or
keeps refreshing on an interval until interrupted.
"""

import argparse
import asyncio
import signal
from functools import partial

from feedrefresh.batching import BatchScheduler, RateLimitPolicy
from feedrefresh.config.settings import Settings, settings
from feedrefresh.notifiers.log import LogNotifier
from feedrefresh.parsers.feed_parser import FeedParserAdapter
from feedrefresh.scheduler import create_scheduler, run_once
from feedrefresh.services.refresh_service import RefreshService
from feedrefresh.storage.sqlite import SQLiteFeedStorage
from feedrefresh.transport.http import HttpDownloadSession
from feedrefresh.utils.logger import configure_logging, get_logger


async def build_service(config: Settings, feed_urls: list[str] | None = None) -> RefreshService:
    """Create a refresh service with initialized storage."""
    storage = SQLiteFeedStorage(config.db_path)
    await storage.initialize()

    batch_scheduler = BatchScheduler(
        policies=[
            RateLimitPolicy(
                host_pattern=host,
                batch_size=config.rate_limit_batch_size,
                delay_per_batch=config.rate_limit_batch_delay,
            )
            for host in config.rate_limited_hosts
        ]
    )
    session_factory = partial(
        HttpDownloadSession,
        max_concurrent=config.max_concurrent_downloads,
        timeout=config.http_timeout,
        user_agent=config.user_agent,
    )

    return RefreshService(
        feed_urls=feed_urls or config.feed_urls,
        parser=FeedParserAdapter(),
        storage=storage,
        notifier=LogNotifier(),
        batch_scheduler=batch_scheduler,
        session_factory=session_factory,
    )


async def run_cli_once(feed_urls: list[str] | None = None) -> dict:
    """Run one refresh via CLI and exit."""
    logger = get_logger("cli")
    logger.info("Running one-time refresh")

    service = await build_service(settings, feed_urls)
    try:
        stats = await run_once(service)
    finally:
        await service.close()

    return stats


async def run_daemon(feed_urls: list[str] | None = None) -> None:
    """Refresh on an interval until SIGINT/SIGTERM."""
    logger = get_logger("daemon")
    service = await build_service(settings, feed_urls)

    scheduler = create_scheduler(
        service,
        interval_minutes=settings.refresh_interval_minutes,
        run_immediately=True,
    )
    scheduler.start()
    logger.info("Scheduler started")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await stop.wait()

    # Shutdown
    scheduler.shutdown(wait=False)
    service.suspend()
    await service.close()
    logger.info("feedrefresh stopped")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="feedrefresh - conditional feed refresher")
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Refresh all feeds once and exit",
    )
    parser.add_argument(
        "--feed",
        action="append",
        dest="feeds",
        metavar="URL",
        help="Feed URL to refresh (repeatable, overrides FEED_URLS)",
    )
    args = parser.parse_args()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
    )

    if args.run_once:
        asyncio.run(run_cli_once(args.feeds))
    else:
        asyncio.run(run_daemon(args.feeds))


if __name__ == "__main__":
    main()
