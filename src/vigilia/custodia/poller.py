"""
Poll Engine - turn a pull-only "changes since last poll" call into a stream.

One Poller drives one server-side filter. The first subscriber starts a
single background thread; later subscribers only join the fan-out. The
thread calls `fetch` every `interval` seconds and offers each returned item,
in order, to every subscriber's channel. A failed poll is logged and retried
on the next tick; it never ends the loop.

Lifecycle: idle -> running -> (stopping) -> idle, restartable.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from ..pneuma.errors import RpcError
from .channel import BackpressurePolicy, FilterStateError, WatchChannel

logger = logging.getLogger(__name__)

Fetch = Callable[[], Iterable[Any]]
ErrorHandler = Callable[[Exception], None]


class PollState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


class Poller:
    def __init__(
        self,
        fetch: Fetch,
        *,
        interval: float = 0.1,
        queue_size: int = 16,
        policy: BackpressurePolicy = BackpressurePolicy.BLOCK,
        delivery_timeout: float = 1.0,
        on_error: Optional[ErrorHandler] = None,
        name: str = "poller",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.fetch = fetch
        self.interval = interval
        self.queue_size = queue_size
        self.policy = BackpressurePolicy(policy)
        self.delivery_timeout = delivery_timeout
        self.on_error = on_error
        self.name = name

        self._cond = threading.Condition()
        self._state = PollState.IDLE
        self._channels: list[WatchChannel] = []
        self._dispatchers: dict[WatchChannel, threading.Thread] = {}
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

        self._in_flight = 0
        self.peak_in_flight = 0
        self.loops_started = 0
        self.ticks = 0
        self.errors = 0

    # -- introspection -------------------------------------------------------

    @property
    def state(self) -> PollState:
        """IDLE or RUNNING; a loop that is winding down still reports RUNNING."""
        with self._cond:
            return PollState.IDLE if self._state is PollState.IDLE else PollState.RUNNING

    @property
    def is_running(self) -> bool:
        return self.state is PollState.RUNNING

    @property
    def subscriber_count(self) -> int:
        with self._cond:
            return len(self._channels)

    # -- lifecycle -----------------------------------------------------------

    def subscribe(self, callback: Optional[Callable[[Any], None]] = None) -> WatchChannel:
        """
        Register a consumer and make sure exactly one poll loop is running.

        Without a callback the returned channel is pulled by the caller.
        With one, a dispatcher thread drains the channel into the callback;
        the channel is still returned so the caller can `close()` it.
        """
        channel = WatchChannel(
            self.queue_size,
            self.policy,
            on_close=self._detach,
            dispatched=callback is not None,
        )

        with self._cond:
            if self._state is PollState.STOPPING and threading.current_thread() is self._thread:
                raise FilterStateError("Cannot subscribe from a poll loop that is stopping")
            while self._state is PollState.STOPPING:
                self._cond.wait()

            self._channels.append(channel)
            if callback is not None:
                dispatcher = threading.Thread(
                    target=self._dispatch,
                    args=(channel, callback),
                    name=f"{self.name}-dispatch",
                    daemon=True,
                )
                self._dispatchers[channel] = dispatcher
                dispatcher.start()

            if self._state is PollState.IDLE:
                self._state = PollState.RUNNING
                self._stop = threading.Event()
                self._thread = threading.Thread(
                    target=self._run,
                    args=(self._stop,),
                    name=self.name,
                    daemon=True,
                )
                self.loops_started += 1
                self._thread.start()
                logger.debug("%s: poll loop started", self.name)

        return channel

    def stop(self, wait: bool = True) -> None:
        """
        Ask the poll loop to exit; a no-op when already idle.

        The loop finishes any in-flight poll, then closes every channel.
        Callback subscribers lose whatever is still buffered; a callback
        already running is allowed to finish. With `wait`, blocks until the
        loop has exited and, for at most `delivery_timeout` seconds, for
        running callbacks to return. It never joins the calling thread.
        """
        with self._cond:
            if self._state is PollState.IDLE:
                return
            if self._state is PollState.RUNNING:
                self._state = PollState.STOPPING
                self._stop.set()
                logger.debug("%s: stop requested", self.name)
            thread = self._thread
            channels = list(self._channels)
            dispatchers = list(self._dispatchers.values())

        for channel in channels:
            if channel.dispatched:
                channel.finish()
            else:
                channel.wake()

        current = threading.current_thread()
        if not wait or current is thread:
            return
        if thread is not None:
            thread.join()

        deadline = time.monotonic() + self.delivery_timeout
        for dispatcher in dispatchers:
            if dispatcher is current:
                continue
            dispatcher.join(max(0.0, deadline - time.monotonic()))
            if dispatcher.is_alive():
                logger.warning("%s: subscriber callback still running after stop", self.name)

    def _detach(self, channel: WatchChannel) -> None:
        with self._cond:
            if channel not in self._channels:
                return
            self._channels.remove(channel)
            self._dispatchers.pop(channel, None)
            last = not self._channels
        if last:
            logger.debug("%s: last subscriber left", self.name)
            self.stop()

    # -- loop ----------------------------------------------------------------

    def _run(self, stop: threading.Event) -> None:
        try:
            while not stop.wait(self.interval):
                self._tick(stop)
        finally:
            self._shutdown()

    def _tick(self, stop: threading.Event) -> None:
        with self._cond:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
        try:
            items = list(self.fetch())
        except RpcError as exc:
            self._report(exc)
            return
        except Exception as exc:
            logger.exception("%s: unexpected error while polling", self.name)
            self._report(exc, logged=True)
            return
        finally:
            with self._cond:
                self._in_flight -= 1
                self.ticks += 1

        if not items:
            return
        with self._cond:
            channels = list(self._channels)
        for item in items:
            for channel in channels:
                channel.offer(item, self.delivery_timeout, stop.is_set)

    def _report(self, exc: Exception, logged: bool = False) -> None:
        self.errors += 1
        if not logged:
            logger.warning("%s: poll failed, retrying next tick: %s", self.name, exc)
        if self.on_error is not None:
            try:
                self.on_error(exc)
            except Exception:
                logger.exception("%s: error handler raised", self.name)

    def _shutdown(self) -> None:
        with self._cond:
            channels = self._channels
            self._channels = []
            self._dispatchers = {}
            self._thread = None
            self._state = PollState.IDLE
            self._cond.notify_all()
        for channel in channels:
            channel.finish()
        logger.debug("%s: poll loop stopped", self.name)

    def _dispatch(self, channel: WatchChannel, callback: Callable[[Any], None]) -> None:
        for item in channel.drain():
            try:
                callback(item)
            except Exception:
                logger.exception("%s: subscriber callback raised", self.name)
