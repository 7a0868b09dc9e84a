"""
Scheduler Module

Timed-callback schedulers driving the protocol roles.

- EventScheduler: discrete-event scheduler with a virtual clock, used by the
  simulation and the tests. Events run one at a time, in time order.
- ThreadingScheduler: wall-clock scheduler for service deployments. Timer
  callbacks and inbound payload handlers run under one lock, so every
  handler is apparent-atomic just like in the discrete-event case.

Both return Timer handles that can be revoked before they fire.
"""

import heapq
import itertools
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional


class Timer:
    """Handle for one scheduled callback."""

    def __init__(
        self,
        when: float,
        sequence: int,
        callback: Callable[..., Any],
        args: tuple = (),
        name: str = "",
    ):
        self.when = when
        self.sequence = sequence
        self.callback = callback
        self.args = args
        self.name = name
        self.cancelled = False
        self.fired = False
        self._thread: Optional[threading.Timer] = None

    @property
    def active(self) -> bool:
        """True while the timer can still fire."""
        return not self.cancelled and not self.fired

    def cancel(self) -> None:
        """Revoke the timer. Has no effect once it has fired."""
        self.cancelled = True
        if self._thread is not None:
            self._thread.cancel()

    def __lt__(self, other: "Timer") -> bool:
        return (self.when, self.sequence) < (other.when, other.sequence)

    def __repr__(self) -> str:
        state = "fired" if self.fired else "cancelled" if self.cancelled else "active"
        return f"Timer(name={self.name!r}, when={self.when:.6f}, {state})"


class Scheduler(ABC):
    """Common interface of the schedulers."""

    @abstractmethod
    def now(self) -> float:
        """Current scheduler time in seconds."""

    @abstractmethod
    def schedule(
        self,
        delay: float,
        callback: Callable[..., Any],
        *args: Any,
        name: str = ""
    ) -> Timer:
        """
        Schedule ``callback(*args)`` to run after ``delay`` seconds.

        Returns:
            Timer handle that can be cancelled
        """

    @abstractmethod
    def run_exclusive(self, callback: Callable[..., Any], *args: Any) -> Any:
        """Run ``callback(*args)`` serialized with timer callbacks."""

    def cancel(self, timer: Optional[Timer]) -> None:
        """Cancel a timer handle; None is ignored."""
        if timer is not None:
            timer.cancel()


class EventScheduler(Scheduler):
    """
    Discrete-event scheduler: a priority queue of timed callbacks and a
    virtual clock that jumps from one event to the next.

    Events with the same timestamp fire in scheduling order.
    """

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._queue: List[Timer] = []
        self._sequence = itertools.count()
        self.events_processed = 0

    def now(self) -> float:
        return self._now

    def schedule(self, delay, callback, *args, name=""):
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        return self.schedule_at(self._now + delay, callback, *args, name=name)

    def schedule_at(
        self,
        when: float,
        callback: Callable[..., Any],
        *args: Any,
        name: str = ""
    ) -> Timer:
        """Schedule ``callback(*args)`` at absolute time ``when``."""
        if when < self._now:
            raise ValueError(f"cannot schedule in the past ({when} < {self._now})")
        timer = Timer(when, next(self._sequence), callback, args, name)
        heapq.heappush(self._queue, timer)
        return timer

    def run_exclusive(self, callback, *args):
        return callback(*args)

    @property
    def pending(self) -> int:
        """Number of timers still waiting to fire."""
        return sum(1 for timer in self._queue if timer.active)

    def _discard_cancelled(self) -> None:
        while self._queue and not self._queue[0].active:
            heapq.heappop(self._queue)

    def peek(self) -> Optional[float]:
        """Time of the next active event, or None if the queue is empty."""
        self._discard_cancelled()
        return self._queue[0].when if self._queue else None

    def step(self) -> bool:
        """
        Fire the next active event.

        Returns:
            True if an event fired, False if the queue was empty
        """
        self._discard_cancelled()
        if not self._queue:
            return False

        timer = heapq.heappop(self._queue)
        self._now = timer.when
        timer.fired = True
        self.events_processed += 1
        timer.callback(*timer.args)
        return True

    def run(self, until: Optional[float] = None, max_events: Optional[int] = None) -> int:
        """
        Process events in time order.

        Args:
            until: Stop before events later than this time; the clock is then
                advanced to ``until``
            max_events: Stop after this many events

        Returns:
            Number of events fired
        """
        fired = 0
        while max_events is None or fired < max_events:
            next_time = self.peek()
            if next_time is None:
                break
            if until is not None and next_time > until:
                break
            self.step()
            fired += 1

        if until is not None and until > self._now:
            self._now = until

        return fired


class ThreadingScheduler(Scheduler):
    """
    Wall-clock scheduler backed by ``threading.Timer``.

    A single re-entrant lock serializes timer callbacks with any handler
    submitted through ``run_exclusive``.
    """

    def __init__(self):
        self._start = time.monotonic()
        self._lock = threading.RLock()
        self._sequence = itertools.count()
        self._timers: List[Timer] = []
        self._shutdown = False

    def now(self) -> float:
        return time.monotonic() - self._start

    def schedule(self, delay, callback, *args, name=""):
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")

        with self._lock:
            if self._shutdown:
                raise RuntimeError("scheduler has been shut down")

            timer = Timer(self.now() + delay, next(self._sequence), callback, args, name)
            thread = threading.Timer(delay, self._fire, args=(timer,))
            thread.daemon = True
            timer._thread = thread
            self._timers = [t for t in self._timers if t.active]
            self._timers.append(timer)
            thread.start()
            return timer

    def _fire(self, timer: Timer) -> None:
        with self._lock:
            if not timer.active:
                return
            timer.fired = True
            timer.callback(*timer.args)

    def run_exclusive(self, callback, *args):
        with self._lock:
            return callback(*args)

    def shutdown(self) -> None:
        """Cancel every outstanding timer and refuse new ones."""
        with self._lock:
            self._shutdown = True
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()
