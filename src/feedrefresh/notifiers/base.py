"""Abstract sync notifier interface using Protocol."""

from typing import Protocol

from feedrefresh.models.article import ArticleChanges


class SyncNotifier(Protocol):
    """Receiver of article changes produced by a refresh.

    A feed's refresh unit is not resolved until ``notify`` returns, so
    downstream persistence finishes before the refresh reports completion.
    """

    async def notify(self, changes: ArticleChanges) -> None:
        """Handle the article changes of one feed.

        Raises:
            NotificationError: When the changes could not be delivered.
        """
        ...
