"""Notifiers package."""

from feedrefresh.notifiers.base import SyncNotifier
from feedrefresh.notifiers.log import LogNotifier
from feedrefresh.notifiers.multi import MultiNotifier

__all__ = [
    "SyncNotifier",
    "LogNotifier",
    "MultiNotifier",
]
