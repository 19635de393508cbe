"""Transport package."""

from feedrefresh.transport.base import DownloadSession, DownloadSessionDelegate
from feedrefresh.transport.http import HttpDownloadSession

__all__ = [
    "DownloadSession",
    "DownloadSessionDelegate",
    "HttpDownloadSession",
]
