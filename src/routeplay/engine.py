#!/usr/bin/env python3
"""
Playback engine: replays a route as a moving vehicle.

The engine owns the cursor and the play/pause/rate state. It advances the
cursor on ticks delivered by a Scheduler and derives telemetry from the route
and the cursor on every read.
"""

from datetime import timedelta
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Tuple
import logging
import threading

from .geometry import Sample
from .geo_metrics import (
    eta_from_samples,
    format_eta,
    instantaneous_speed_kmh,
    progress_pct,
)
from .route import Route
from .scheduler import ScheduledTick, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_RATE_MS = 2000


class InvalidArgumentError(ValueError):
    """Raised when a command is called with an argument it cannot accept."""

    pass


class PlaybackState(Enum):
    """Enumeration for playback states."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"

    def __str__(self) -> str:
        return self.value


class TelemetrySnapshot(NamedTuple):
    """Telemetry derived from the route at the current cursor."""

    position: Optional[Sample]
    speed_kmh: float
    eta: Optional[timedelta]  # None when no estimate is available
    progress_pct: float
    cursor: int
    playing: bool
    state: PlaybackState
    rate_ms: int

    @property
    def eta_display(self) -> str:
        return format_eta(self.eta)


SnapshotListener = Callable[[TelemetrySnapshot], None]


def _validate_rate(rate_ms) -> int:
    if isinstance(rate_ms, bool) or not isinstance(rate_ms, int):
        raise InvalidArgumentError(f"Rate must be an integer number of ms, got {rate_ms!r}")
    if rate_ms <= 0:
        raise InvalidArgumentError(f"Rate must be positive, got {rate_ms} ms")
    return rate_ms


class PlaybackEngine:
    """
    Deterministic route playback.

    States move IDLE/PAUSED/FINISHED -> PLAYING on play(), PLAYING -> PAUSED
    on pause(), any -> IDLE on reset(), and PLAYING -> FINISHED when a tick
    reaches the last sample. At most one tick is pending at any time.
    Commands and ticks are serialized by a re-entrant lock.
    """

    def __init__(
        self, route: Route, scheduler: Scheduler, rate_ms: int = DEFAULT_RATE_MS
    ):
        """
        Args:
            route: Route to replay; may be empty
            scheduler: Cadence source for ticks
            rate_ms: Interval between automatic cursor advances

        Raises:
            InvalidArgumentError: If rate_ms is not a positive integer
        """
        self._rate_ms = _validate_rate(rate_ms)
        self._route = route
        self._scheduler = scheduler
        self._cursor = 0
        self._state = PlaybackState.IDLE
        self._pending: Optional[ScheduledTick] = None
        # Incremented whenever a tick is scheduled or cancelled; a firing
        # tick whose generation is stale is ignored
        self._generation = 0
        self._lock = threading.RLock()
        self._listeners: List[SnapshotListener] = []
        # Set when a listener mutates the engine during delivery
        self._notifying = False
        self._renotify = False

        logger.debug(
            f"Playback engine created for {len(route)} samples at {rate_ms} ms per tick"
        )

    @property
    def route(self) -> Route:
        return self._route

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            return self._state

    @property
    def playing(self) -> bool:
        with self._lock:
            return self._state == PlaybackState.PLAYING

    @property
    def rate_ms(self) -> int:
        with self._lock:
            return self._rate_ms

    def play(self) -> None:
        """Start or resume playback, rewinding first if the route was completed."""
        with self._lock:
            if not self._route:
                logger.debug("play() ignored: route is empty")
                return
            if self._state == PlaybackState.PLAYING:
                return

            if self._cursor >= len(self._route) - 1:
                logger.debug("Route already complete, rewinding before play")
                self._cursor = 0

            logger.debug(f"{self._state} -> playing at cursor {self._cursor}")
            self._state = PlaybackState.PLAYING
            self._schedule_next_tick()
            self._notify()

    def pause(self) -> None:
        """Stop automatic advance, keeping the cursor where it is."""
        with self._lock:
            if self._state != PlaybackState.PLAYING:
                return

            self._cancel_pending_tick()
            self._state = PlaybackState.PAUSED
            logger.debug(f"playing -> paused at cursor {self._cursor}")
            self._notify()

    def reset(self) -> None:
        """Stop playback and rewind to the first sample."""
        with self._lock:
            self._cancel_pending_tick()
            if self._state == PlaybackState.IDLE and self._cursor == 0:
                return

            logger.debug(f"{self._state} -> idle, cursor {self._cursor} -> 0")
            self._state = PlaybackState.IDLE
            self._cursor = 0
            self._notify()

    def set_rate(self, rate_ms: int) -> None:
        """
        Change the interval used for ticks scheduled from now on.

        A tick that is already pending keeps its original delay.

        Raises:
            InvalidArgumentError: If rate_ms is not a positive integer
        """
        rate_ms = _validate_rate(rate_ms)
        with self._lock:
            if not self._route or rate_ms == self._rate_ms:
                return

            logger.debug(f"Rate changed {self._rate_ms} -> {rate_ms} ms")
            self._rate_ms = rate_ms
            self._notify()

    def tick(self) -> None:
        """Advance the cursor by one sample if playing."""
        with self._lock:
            if self._state != PlaybackState.PLAYING:
                return

            last_index = len(self._route) - 1
            if self._cursor < last_index:
                self._cursor += 1

            if self._cursor >= last_index:
                self._cancel_pending_tick()
                self._state = PlaybackState.FINISHED
                logger.info(f"Playback finished at sample {self._cursor}")
            else:
                self._schedule_next_tick()

            self._notify()

    def snapshot(self) -> TelemetrySnapshot:
        """Derive telemetry from the route and the current cursor."""
        with self._lock:
            n = len(self._route)
            playing = self._state == PlaybackState.PLAYING
            if n == 0:
                return TelemetrySnapshot(
                    position=None,
                    speed_kmh=0.0,
                    eta=None,
                    progress_pct=0.0,
                    cursor=0,
                    playing=playing,
                    state=self._state,
                    rate_ms=self._rate_ms,
                )

            return TelemetrySnapshot(
                position=self._route[self._cursor],
                speed_kmh=instantaneous_speed_kmh(self._route, self._cursor),
                eta=eta_from_samples(self._route, self._cursor),
                progress_pct=progress_pct(self._cursor, n),
                cursor=self._cursor,
                playing=playing,
                state=self._state,
                rate_ms=self._rate_ms,
            )

    def travelled_path(self) -> List[Tuple[float, float]]:
        """Coordinates from the first sample up to and including the cursor."""
        with self._lock:
            return self._route.travelled(self._cursor)

    def full_path(self) -> List[Tuple[float, float]]:
        """Coordinates of the whole route."""
        return self._route.coordinates()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a listener called with a fresh snapshot after every change.

        Returns:
            Callable that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _schedule_next_tick(self) -> None:
        self._cancel_pending_tick()
        generation = self._generation
        self._pending = self._scheduler.schedule(
            self._rate_ms, lambda: self._on_scheduled_tick(generation)
        )

    def _cancel_pending_tick(self) -> None:
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_scheduled_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring stale tick")
                return
            self._pending = None
            self.tick()

    def _notify(self) -> None:
        # A listener command restarts delivery with a fresh snapshot, so no
        # listener receives a snapshot older than one already delivered
        if self._notifying:
            self._renotify = True
            return

        self._notifying = True
        try:
            while True:
                self._renotify = False
                snapshot = self.snapshot()
                for listener in list(self._listeners):
                    listener(snapshot)
                    if self._renotify:
                        break
                if not self._renotify:
                    return
        finally:
            self._notifying = False
