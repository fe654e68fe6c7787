#!/usr/bin/env python3
"""
Cadence sources that drive playback ticks.

The engine only talks to the Scheduler interface, so tests and batch runs can
use a virtual clock while interactive runs use real timers.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import heapq
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class ScheduledTick(ABC):
    """Handle for one pending callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from firing. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """Runs a callback once after a delay."""

    @abstractmethod
    def schedule(self, delay_ms: int, callback: TickCallback) -> ScheduledTick:
        """
        Schedule callback to run once after delay_ms milliseconds.

        Args:
            delay_ms: Delay in milliseconds
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the callback before it fires
        """
        pass


class _TimerTick(ScheduledTick):
    def __init__(self, timer: threading.Timer):
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler(Scheduler):
    """Wall-clock scheduler backed by one threading.Timer per tick."""

    def schedule(self, delay_ms: int, callback: TickCallback) -> ScheduledTick:
        timer = threading.Timer(delay_ms / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return _TimerTick(timer)


class _ManualTick(ScheduledTick):
    def __init__(self, due_ms: int, callback: TickCallback):
        self.due_ms = due_ms
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler.

    Nothing fires until the clock is advanced explicitly. Callbacks due at
    the same time fire in the order they were scheduled.
    """

    def __init__(self, start_ms: int = 0):
        self.now_ms = start_ms
        self._queue: List = []
        self._sequence = itertools.count()

    def schedule(self, delay_ms: int, callback: TickCallback) -> ScheduledTick:
        tick = _ManualTick(self.now_ms + max(0, delay_ms), callback)
        heapq.heappush(self._queue, (tick.due_ms, next(self._sequence), tick))
        return tick

    def pending(self) -> int:
        """Number of scheduled callbacks that have not fired or been cancelled."""
        return sum(1 for _, _, tick in self._queue if not tick.cancelled)

    def next_due_ms(self) -> Optional[int]:
        """Due time of the earliest live callback, or None when idle."""
        self._drop_cancelled()
        if not self._queue:
            return None
        return self._queue[0][0]

    def advance(self, delta_ms: int) -> int:
        """
        Move the clock forward, firing every callback that comes due.

        Callbacks scheduled by a firing callback also fire in this call if
        they are due before the new time.

        Args:
            delta_ms: Milliseconds to advance; must not be negative

        Returns:
            Number of callbacks fired

        Raises:
            ValueError: If delta_ms is negative
        """
        if delta_ms < 0:
            raise ValueError(f"Cannot move the clock backwards ({delta_ms} ms)")

        target_ms = self.now_ms + delta_ms
        fired = 0

        while True:
            self._drop_cancelled()
            if not self._queue or self._queue[0][0] > target_ms:
                break
            due_ms, _, tick = heapq.heappop(self._queue)
            self.now_ms = due_ms
            tick.cancel()
            tick.callback()
            fired += 1

        self.now_ms = target_ms
        return fired

    def run_until_idle(self, max_steps: int = 1000000) -> int:
        """
        Jump the clock to each next due callback until nothing is pending.

        Args:
            max_steps: Upper bound on callbacks to fire

        Returns:
            Number of callbacks fired
        """
        fired = 0
        while fired < max_steps:
            due_ms = self.next_due_ms()
            if due_ms is None:
                break
            fired += self.advance(due_ms - self.now_ms)

        if fired >= max_steps and self.next_due_ms() is not None:
            logger.warning(f"Stopped after {max_steps} scheduled callbacks")
        return fired

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
