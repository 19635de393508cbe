"""Pending-work counter that fires one completion callback per refresh."""

import threading
from typing import Callable

import structlog

logger = structlog.get_logger()


class CompletionAggregator:
    """Counts outstanding fetch units and fires a callback when none remain.

    A unit is either one feed download or one batch that has been scheduled
    but not yet dispatched. The callback is stored once per refresh and
    cleared before it is invoked, so late stray resolutions cannot fire it
    a second time.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending = 0
        self._active = False
        self._callback: Callable[[], None] | None = None

    @property
    def pending(self) -> int:
        """Number of unresolved units."""
        with self._lock:
            return self._pending

    @property
    def is_active(self) -> bool:
        """True between ``start`` and the completion callback."""
        with self._lock:
            return self._active

    def start(self, callback: Callable[[], None] | None = None) -> None:
        """Begin tracking a refresh whose completion calls ``callback``."""
        with self._lock:
            self._pending = 0
            self._active = True
            self._callback = callback

    def register(self, count: int = 1) -> None:
        """Add ``count`` units of outstanding work."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        with self._lock:
            self._pending += count

    def resolve(self) -> None:
        """Mark one unit done, firing the callback if it was the last one."""
        with self._lock:
            if self._pending == 0:
                logger.warning("Ignoring resolve with no pending work")
                return
            self._pending -= 1
            if self._pending > 0:
                return
            callback = self._callback
            self._callback = None
            self._active = False

        logger.debug("All refresh work resolved")
        if callback is not None:
            callback()
