"""Notifier that reports article changes to the log."""

import structlog

from feedrefresh.models.article import ArticleChanges

logger = structlog.get_logger()


class LogNotifier:
    """Writes one log event per feed with changes."""

    async def notify(self, changes: ArticleChanges) -> None:
        if changes.is_empty:
            return
        logger.info(
            "Articles changed",
            feed_url=changes.feed_url,
            new=len(changes.new_articles),
            updated=len(changes.updated_articles),
            titles=[a.title for a in changes.new_articles[:5]],
        )
