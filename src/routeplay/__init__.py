#!/usr/bin/env python3
"""
Routeplay - replay a recorded GPS route as a simulated moving vehicle.

This package provides a playback engine that advances over a recorded route
on an injectable cadence, derives speed/ETA/progress telemetry, and renders
the vehicle's progress on interactive maps.
"""
import importlib.metadata

__version__ = importlib.metadata.version("routeplay")

# Import main classes for public API
from .geometry import Sample
from .route import Route, RouteValidationError
from .scheduler import ManualScheduler, Scheduler, ScheduledTick, ThreadingScheduler
from .engine import (
    InvalidArgumentError,
    PlaybackEngine,
    PlaybackState,
    TelemetrySnapshot,
)

__all__ = [
    "Sample",
    "Route",
    "RouteValidationError",
    "Scheduler",
    "ScheduledTick",
    "ManualScheduler",
    "ThreadingScheduler",
    "PlaybackEngine",
    "PlaybackState",
    "TelemetrySnapshot",
    "InvalidArgumentError",
]
