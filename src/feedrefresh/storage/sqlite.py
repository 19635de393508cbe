"""SQLite storage implementation for feeds and articles.

Reconciles parsed feeds against stored articles and keeps per-feed
conditional GET metadata between runs.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Iterable

import aiosqlite
import structlog

from feedrefresh.delta import content_hash
from feedrefresh.exceptions import StorageError
from feedrefresh.models.article import Article, ArticleChanges, ParsedFeed, ParsedItem
from feedrefresh.models.feed import ConditionalGetInfo, Feed

logger = structlog.get_logger()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS feeds (
    url TEXT PRIMARY KEY,
    home_page_url TEXT,
    name TEXT,
    content_hash TEXT,
    etag TEXT,
    last_modified TEXT
);

CREATE TABLE IF NOT EXISTS articles (
    feed_url TEXT NOT NULL,
    article_id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    url TEXT,
    summary TEXT NOT NULL DEFAULT '',
    published_at TEXT,
    content_hash TEXT NOT NULL,
    PRIMARY KEY (feed_url, article_id)
);
"""


class SQLiteFeedStorage:
    """SQLite-based feed storage implementation.

    Reason: SQLite provides zero-deployment-cost persistence suitable for a
    single refresher process.
    """

    def __init__(self, db_path: Path):
        """Initialize SQLite storage.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables if they don't exist. Safe to call repeatedly."""
        if self._initialized:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self._db_path) as db:
            await db.executescript(SCHEMA_SQL)
            await db.commit()

        self._initialized = True

    async def update(self, feed: Feed, parsed: ParsedFeed) -> ArticleChanges:
        """Insert new articles and rewrite changed ones.

        Raises:
            StorageError: On any database failure.
        """
        changes = ArticleChanges(feed_url=feed.url)

        try:
            async with aiosqlite.connect(self._db_path) as db:
                for item in parsed.items:
                    article = self._item_to_article(feed.url, item)
                    async with db.execute(
                        "SELECT content_hash FROM articles WHERE feed_url = ? AND article_id = ?",
                        (feed.url, article.article_id),
                    ) as cursor:
                        row = await cursor.fetchone()

                    if row is None:
                        changes.new_articles.append(article)
                    elif row[0] != article.content_hash:
                        changes.updated_articles.append(article)
                    else:
                        continue

                    await db.execute(
                        """
                        INSERT OR REPLACE INTO articles (
                            feed_url, article_id, title, url,
                            summary, published_at, content_hash
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            article.feed_url,
                            article.article_id,
                            article.title,
                            article.url,
                            article.summary,
                            article.published_at.isoformat() if article.published_at else None,
                            article.content_hash,
                        ),
                    )
                await db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to update articles for {feed.url}: {e}") from e

        logger.debug(
            "Articles reconciled",
            feed_url=feed.url,
            new=len(changes.new_articles),
            updated=len(changes.updated_articles),
        )
        return changes

    async def get_articles(self, feed_url: str) -> list[Article]:
        """Get all stored articles for a feed."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM articles WHERE feed_url = ? ORDER BY article_id",
                (feed_url,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_article(row) for row in rows]

    async def load_feeds(self, urls: Iterable[str]) -> list[Feed]:
        """Load feeds in the given order; unknown URLs yield blank feeds."""
        urls = list(dict.fromkeys(urls))
        if not urls:
            return []

        placeholders = ", ".join("?" for _ in urls)
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT * FROM feeds WHERE url IN ({placeholders})",
                urls,
            ) as cursor:
                rows = {row["url"]: self._row_to_feed(row) for row in await cursor.fetchall()}

        return [rows.get(url) or Feed(url=url) for url in urls]

    async def save_feeds(self, feeds: Iterable[Feed]) -> None:
        """Upsert feed metadata."""
        async with aiosqlite.connect(self._db_path) as db:
            await db.executemany(
                """
                INSERT INTO feeds (url, home_page_url, name, content_hash, etag, last_modified)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(url) DO UPDATE SET
                    home_page_url = excluded.home_page_url,
                    name = excluded.name,
                    content_hash = excluded.content_hash,
                    etag = excluded.etag,
                    last_modified = excluded.last_modified
                """,
                [self._feed_to_row(feed) for feed in feeds],
            )
            await db.commit()

    async def close(self) -> None:
        """Close storage (no-op, connections are per operation)."""
        pass

    def _item_to_article(self, feed_url: str, item: ParsedItem) -> Article:
        fingerprint = json.dumps(
            [
                item.title,
                item.url,
                item.summary,
                item.published_at.isoformat() if item.published_at else None,
            ]
        )
        return Article(
            feed_url=feed_url,
            article_id=item.unique_id,
            title=item.title,
            url=item.url,
            summary=item.summary,
            published_at=item.published_at,
            content_hash=content_hash(fingerprint.encode("utf-8")),
        )

    def _row_to_article(self, row: aiosqlite.Row) -> Article:
        return Article(
            feed_url=row["feed_url"],
            article_id=row["article_id"],
            title=row["title"],
            url=row["url"],
            summary=row["summary"],
            published_at=(
                datetime.fromisoformat(row["published_at"]) if row["published_at"] else None
            ),
            content_hash=row["content_hash"],
        )

    def _row_to_feed(self, row: aiosqlite.Row) -> Feed:
        info = None
        if row["etag"] is not None or row["last_modified"] is not None:
            info = ConditionalGetInfo(etag=row["etag"], last_modified=row["last_modified"])
        return Feed(
            url=row["url"],
            home_page_url=row["home_page_url"],
            name=row["name"],
            content_hash=row["content_hash"],
            conditional_get_info=info,
        )

    def _feed_to_row(self, feed: Feed) -> tuple:
        info = feed.conditional_get_info
        return (
            feed.url,
            feed.home_page_url,
            feed.name,
            feed.content_hash,
            info.etag if info else None,
            info.last_modified if info else None,
        )
