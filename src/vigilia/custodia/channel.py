"""
Watch channels - bounded per-consumer delivery queues.

Each consumer of a filter gets its own WatchChannel, so a slow consumer
only ever fills its own buffer. What happens when that buffer is full is
decided by the BackpressurePolicy the channel was built with.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class WatchError(RuntimeError):
    exit_code: int = 5


class ChannelClosedError(WatchError):
    """End of stream: the channel was closed and its buffer is empty."""


class FilterStateError(WatchError):
    """A filter or channel was used in a way its lifecycle does not allow."""

    exit_code = 6


class BackpressurePolicy(str, Enum):
    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"


class WatchChannel:
    """
    Pull-style stream of filter items.

    `next()` blocks until an item arrives or the channel closes. Closing
    from the consumer side discards anything still buffered; closing from
    the poll engine keeps the buffer readable until drained, unless the
    channel is `dispatched` (drained into a callback by the engine), in
    which case the backlog is dropped.
    """

    def __init__(
        self,
        maxsize: int = 16,
        policy: BackpressurePolicy = BackpressurePolicy.BLOCK,
        on_close: Optional[Callable[["WatchChannel"], None]] = None,
        dispatched: bool = False,
    ) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self.maxsize = maxsize
        self.policy = BackpressurePolicy(policy)
        self.dropped = 0
        self._on_close = on_close
        self._buffer: deque[Any] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._dispatched = dispatched

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def dispatched(self) -> bool:
        return self._dispatched

    def __len__(self) -> int:
        with self._cond:
            return len(self._buffer)

    def next(self, timeout: Optional[float] = None) -> Any:
        """
        Next item in arrival order.

        Raises:
            ChannelClosedError: The channel is closed and drained
            TimeoutError: Nothing arrived within `timeout` seconds
            FilterStateError: The channel feeds a callback
        """
        if self._dispatched:
            raise FilterStateError("Channel is consumed by a callback; it cannot be pulled")
        return self._take(timeout)

    def _take(self, timeout: Optional[float]) -> Any:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._buffer:
                if self._closed:
                    raise ChannelClosedError("Channel is closed")
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"No item within {timeout}s")
                self._cond.wait(remaining)
            item = self._buffer.popleft()
            self._cond.notify_all()
            return item

    def __iter__(self) -> Iterator[Any]:
        if self._dispatched:
            raise FilterStateError("Channel is consumed by a callback; it cannot be pulled")
        return self.drain()

    def close(self) -> None:
        """Stop receiving. Idempotent; wakes any blocked `next()`."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._buffer.clear()
            self._cond.notify_all()
        if self._on_close is not None:
            self._on_close(self)

    def __enter__(self) -> "WatchChannel":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- engine side ---------------------------------------------------------

    def offer(
        self,
        item: Any,
        timeout: float = 1.0,
        cancelled: Callable[[], bool] = lambda: False,
    ) -> bool:
        """
        Enqueue one item according to the channel's policy.

        Returns False if the item was not delivered. BLOCK waits at most
        `timeout` seconds and stops waiting as soon as `cancelled()` is true.
        """
        with self._cond:
            if self._closed:
                return False
            if len(self._buffer) < self.maxsize:
                self._buffer.append(item)
                self._cond.notify_all()
                return True

            if self.policy is BackpressurePolicy.DROP_OLDEST:
                self._buffer.popleft()
                self._buffer.append(item)
                self.dropped += 1
                self._cond.notify_all()
                logger.warning("Watch channel full; dropped oldest item")
                return True

            if self.policy is BackpressurePolicy.BLOCK:
                deadline = time.monotonic() + timeout
                while len(self._buffer) >= self.maxsize and not self._closed and not cancelled():
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._cond.wait(remaining)
                if self._closed:
                    return False
                if len(self._buffer) < self.maxsize:
                    self._buffer.append(item)
                    self._cond.notify_all()
                    return True

            self.dropped += 1
            logger.warning("Watch channel full; dropped incoming item")
            return False

    def wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def drain(self) -> Iterator[Any]:
        """Yield items until the channel is closed and empty."""
        while True:
            try:
                yield self._take(None)
            except ChannelClosedError:
                return

    def finish(self) -> None:
        """
        Close from the engine side.

        Buffered items stay readable for a pull consumer. A dispatched
        channel drops its backlog, so its callback sees at most the item
        it is already handling.
        """
        with self._cond:
            self._closed = True
            if self._dispatched and self._buffer:
                self.dropped += len(self._buffer)
                self._buffer.clear()
            self._cond.notify_all()
