"""Thread-safe bounded channel carrying samples and protocol events."""

import logging
import threading
from collections import deque
from typing import List, Optional

from vacuum_gauge_lib.models import ChannelItem

logger = logging.getLogger(__name__)


class SampleChannel:
    """Single-producer FIFO between the polling thread and its consumers.

    The producer never blocks. Once the channel holds maxlen items the oldest
    one is discarded to make room (newest wins), and the drop is counted.
    """

    def __init__(self, maxlen: int = 1000) -> None:
        """Initialize channel.

        Args:
            maxlen: Maximum number of undelivered items. Defaults to 1000.
        """
        if maxlen <= 0:
            raise ValueError(f"maxlen must be positive, got {maxlen}")

        self._items: deque[ChannelItem] = deque(maxlen=maxlen)
        self._cond = threading.Condition()
        self._maxlen = maxlen
        self._dropped = 0

    def put(self, item: ChannelItem) -> None:
        """Append an item without blocking (thread-safe).

        If the channel is full, the oldest item is dropped.
        """
        with self._cond:
            if len(self._items) == self._maxlen:
                self._dropped += 1
                logger.debug(f"Channel full, dropped oldest item ({self._dropped} dropped so far)")
            self._items.append(item)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[ChannelItem]:
        """Remove and return the oldest item, waiting up to timeout seconds.

        Returns:
            The item, or None if nothing arrived in time
        """
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._items) > 0, timeout=timeout):
                return None
            return self._items.popleft()

    def drain(self) -> List[ChannelItem]:
        """Remove and return everything currently queued, oldest first."""
        with self._cond:
            items = list(self._items)
            self._items.clear()
            return items

    def snapshot(self) -> List[ChannelItem]:
        """Copy of the queued items without consuming them."""
        with self._cond:
            return list(self._items)

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    @property
    def maxlen(self) -> int:
        """Maximum capacity of channel."""
        return self._maxlen

    @property
    def dropped(self) -> int:
        """Number of items discarded because the channel was full."""
        with self._cond:
            return self._dropped
