# position_feed.py
# Boundary between the device location provider and the navigation session.
# The host implements PositionFeed per platform; the core never branches on it.
#
# Usage:
#   feed = QueuedPositionFeed()
#   sub = feed.subscribe(session.on_position_update, session.on_position_error)
#   feed.push(Fix(39.924, 32.845, speed_mps=1.4))
#   sub.cancel()

import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

from .errors import PositionUnavailableError
from .geo_utils import distance_m
from .models import Fix, RoutePlan

logger = logging.getLogger(__name__)

FixCallback = Callable[[Fix], object]
ErrorCallback = Callable[[Exception], object]

_FIX = "fix"
_ERROR = "error"


# ---------------------------------------------------------------------------
# Subscription handle
# ---------------------------------------------------------------------------

class Subscription:
    """
    Handle returned by PositionFeed.subscribe().

    cancel() is synchronous: it waits for a delivery already in progress
    and no callback runs once it has returned. It may be called from inside
    a callback.
    """

    def __init__(self, on_fix: FixCallback, on_error: Optional[ErrorCallback] = None) -> None:
        self._on_fix = on_fix
        self._on_error = on_error
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        with self._lock:
            self._active = False

    def deliver_fix(self, fix: Fix) -> None:
        self._deliver(self._on_fix, fix)

    def deliver_error(self, error: Exception) -> None:
        if self._on_error is None:
            logger.warning(f"Position stream error with no error handler: {error}")
            return
        self._deliver(self._on_error, error)

    def _deliver(self, callback: Callable, payload) -> None:
        with self._lock:
            if not self._active:
                return
            try:
                callback(payload)
            except Exception:
                # Stream errors never end the subscription
                logger.exception("Position callback failed; subscription kept alive.")


# ---------------------------------------------------------------------------
# Feed interface
# ---------------------------------------------------------------------------

class PositionFeed(ABC):
    """Capability interface over a platform location source."""

    @abstractmethod
    def subscribe(
        self,
        on_fix: FixCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """Start streaming fixes; errors are delivered without ending the stream."""

    @abstractmethod
    def last_known_fix(self) -> Optional[Fix]:
        """Most recent fix the platform has cached, if any."""

    @abstractmethod
    def current_fix(self, timeout_s: float) -> Fix:
        """
        Acquire one fresh fix, waiting at most timeout_s seconds.

        Raises:
            PositionUnavailableError: no fix within the time limit.
        """

    def fetch_fallback_fix(self, timeout_s: float = 30.0) -> Fix:
        """
        One-shot degraded fetch used after a stream error.

        Tries the last known fix first, then a fresh fix with a bounded wait.

        Raises:
            PositionUnavailableError: both attempts failed.
        """
        try:
            fix = self.last_known_fix()
            if fix is not None:
                return fix
            return self.current_fix(timeout_s)
        except PositionUnavailableError:
            raise
        except Exception as e:
            raise PositionUnavailableError(f"Fallback position fetch failed: {e}") from e


# ---------------------------------------------------------------------------
# Reference implementation
# ---------------------------------------------------------------------------

class QueuedPositionFeed(PositionFeed):
    """
    Feed driven by push()/push_error() from any thread.

    A single daemon worker drains the queue, so subscribers see fixes and
    errors one at a time and in push order.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue" = queue.Queue()
        self._subs: List[Subscription] = []
        self._subs_lock = threading.Lock()
        self._latest = threading.Condition()
        self._last_fix: Optional[Fix] = None
        self._fix_count = 0
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # PositionFeed
    # ------------------------------------------------------------------

    def subscribe(
        self,
        on_fix: FixCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        sub = Subscription(on_fix, on_error)
        with self._subs_lock:
            self._subs.append(sub)
            if self._thread is None:
                self._thread = threading.Thread(target=self._worker, daemon=True)
                self._thread.start()
        return sub

    def last_known_fix(self) -> Optional[Fix]:
        return self._last_fix

    def current_fix(self, timeout_s: float) -> Fix:
        with self._latest:
            seen = self._fix_count
            if not self._latest.wait_for(lambda: self._fix_count > seen, timeout=timeout_s):
                raise PositionUnavailableError(f"No position fix within {timeout_s:.0f}s")
            return self._last_fix

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def push(self, fix: Fix) -> None:
        with self._latest:
            self._last_fix = fix
            self._fix_count += 1
            self._latest.notify_all()
        self._queue.put((_FIX, fix))

    def push_error(self, error: Exception) -> None:
        self._queue.put((_ERROR, error))

    def join(self) -> None:
        """Block until everything pushed so far has been delivered."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        """
        Stop the worker thread after pending items are delivered.

        A later subscribe() starts a fresh worker.
        """
        with self._subs_lock:
            thread, self._thread = self._thread, None
        if thread is None:
            return
        self._queue.put(None)
        thread.join(timeout=timeout)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    break
                kind, payload = item
                with self._subs_lock:
                    self._subs = [s for s in self._subs if s.active]
                    subs = list(self._subs)
                for sub in subs:
                    if kind == _FIX:
                        sub.deliver_fix(payload)
                    else:
                        sub.deliver_error(payload)
            finally:
                self._queue.task_done()


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def fixes_along_route(
    plan: RoutePlan,
    speed_mps: float = 1.4,
    start_time: Optional[float] = None,
) -> Iterator[Fix]:
    """
    Simulated fixes that walk the route point by point.

    Timestamps advance by each segment's length at speed_mps.
    """
    if plan.is_empty:
        return
    t = time.time() if start_time is None else start_time
    previous = plan.points[0]
    for point in plan.points:
        t += distance_m(previous, point) / speed_mps
        yield Fix(point.lat, point.lon, speed_mps=speed_mps, timestamp=t)
        previous = point
