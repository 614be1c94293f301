"""
Cadence runner that drives a StreamController at a fixed interval.

The controller itself has no timer. MonitorRunner pulls a ready snapshot
from a producer and calls ``controller.tick()`` once per interval, either
on a background thread or synchronously for a fixed number of ticks.
Stopping sets an event that is checked before every tick, so no tick is
started after stop() returns.

Example:
    >>> controller = StreamController()
    >>> runner = MonitorRunner(controller, SimulatedFeed(seed=1), interval=0.8)
    >>> runner.start()          # background thread
    >>> ...
    >>> runner.stop()
"""

import logging
import threading
import time
from typing import Callable, Optional, List, Mapping, Union

from .controller import StreamController, TickResult
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

Producer = Callable[[], Union[Snapshot, Mapping[str, float]]]


class MonitorRunner:
    """
    Periodic tick loop around a StreamController.

    Args:
        controller: Controller to drive
        producer: Callable returning the next snapshot (must not block)
        interval: Seconds between ticks (0 = as fast as possible)
        callback: Optional function called with each TickResult
    """

    def __init__(self, controller: StreamController, producer: Producer,
                 interval: float = None,
                 callback: Optional[Callable[[TickResult], None]] = None):
        self.controller = controller
        self.producer = producer
        self.interval = controller.config.tick_interval if interval is None else interval
        self.callback = callback

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def error(self) -> Optional[BaseException]:
        """Exception that ended the background loop, if any."""
        return self._error

    def step(self) -> TickResult:
        """Produce one snapshot and tick the controller."""
        result = self.controller.tick(self.producer())
        if self.callback is not None:
            self.callback(result)
        return result

    def run(self, ticks: int) -> List[TickResult]:
        """
        Run a fixed number of ticks synchronously.

        Starts the controller if it is idle. Sleeps ``interval`` between
        ticks; returns early if stop() is called from another thread.
        """
        self._stop_event.clear()
        self.controller.start()
        results = []
        for i in range(ticks):
            if self._stop_event.is_set():
                break
            results.append(self.step())
            if self.interval > 0 and i < ticks - 1:
                if self._stop_event.wait(self.interval):
                    break
        return results

    def _loop(self):
        next_time = time.monotonic()
        try:
            while not self._stop_event.is_set():
                self.step()
                next_time += self.interval
                delay = next_time - time.monotonic()
                if delay < 0:
                    # Fell behind; resynchronize instead of bursting
                    next_time = time.monotonic()
                    delay = 0
                if self._stop_event.wait(delay):
                    break
        except Exception as e:
            self._error = e
            logger.exception("Monitor loop stopped: %s", e)
            self.controller.stop()

    def start(self):
        """Start ticking on a background thread."""
        if self.is_alive:
            return
        self._stop_event.clear()
        self._error = None
        self.controller.start()
        self._thread = threading.Thread(target=self._loop, name="monitor-runner", daemon=True)
        self._thread.start()
        logger.info("Runner started (interval %.3fs)", self.interval)

    def stop(self, timeout: float = None):
        """
        Stop ticking and stop the controller.

        Waits for an in-flight tick to finish before returning.
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.controller.stop()
        logger.info("Runner stopped after %d ticks", self.controller.tick_count)

    def join(self, timeout: float = None):
        if self._thread is not None:
            self._thread.join(timeout)
