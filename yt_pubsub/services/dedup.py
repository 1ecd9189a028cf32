"""One-shot suppression of the hub's redelivery of freshly published videos."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = timedelta(minutes=5)


class DeliveryTracker:
    """Remembers fresh video ids until the hub delivers them a second time.

    The hub tends to push a new upload twice in quick succession. The first
    delivery of a video whose ``updated`` stamp lies within
    ``FRESHNESS_WINDOW`` of its ``published`` stamp is recorded as pending;
    the next delivery of that id is suppressed and clears it again. Ids that
    are never redelivered stay pending indefinitely.
    """

    def __init__(self, freshness_window: timedelta = FRESHNESS_WINDOW) -> None:
        self._freshness_window = freshness_window
        self._pending: dict[str, None] = {}
        self._lock = threading.Lock()

    def __contains__(self, video_id: object) -> bool:
        with self._lock:
            return video_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def pending(self) -> tuple[str, ...]:
        """Pending ids in the order they were recorded."""

        with self._lock:
            return tuple(self._pending)

    def is_fresh(self, published: datetime | None, updated: datetime | None) -> bool:
        if published is None or updated is None:
            return False
        try:
            return updated - published < self._freshness_window
        except TypeError:
            # naive vs aware stamps
            return False

    def should_suppress(
        self,
        video_id: str,
        published: datetime | None,
        updated: datetime | None,
    ) -> bool:
        """Return True when this delivery repeats a pending fresh one."""

        fresh = self.is_fresh(published, updated)
        with self._lock:
            if video_id in self._pending:
                del self._pending[video_id]
                logger.debug("Suppressing repeated delivery", extra={"video_id": video_id})
                return True
            if fresh:
                self._pending[video_id] = None
        return False
