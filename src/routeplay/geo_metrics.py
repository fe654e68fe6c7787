#!/usr/bin/env python3
"""
Stateless geospatial arithmetic for route playback.

Distances use the haversine formula on a spherical Earth. Speed, ETA and
progress are derived from samples and a cursor index; none of these functions
look at the wall clock.
"""

from datetime import timedelta
from typing import Optional, Sequence
import logging
import math

from .geometry import Sample

logger = logging.getLogger(__name__)

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000.0

ETA_UNAVAILABLE = "N/A"


def distance_meters(a: Sample, b: Sample) -> float:
    """
    Calculate the great-circle distance between two samples.

    Args:
        a: First sample
        b: Second sample

    Returns:
        Distance in meters
    """
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2

    # Rounding can push h marginally above 1 for antipodal points
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def calculate_bearing(a: Sample, b: Sample) -> float:
    """
    Calculate the initial great-circle bearing from one sample to another.

    Args:
        a: Start sample
        b: End sample

    Returns:
        Bearing in degrees, in the range [0, 360). Identical points give 0.
    """
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)

    bearing = math.degrees(math.atan2(y, x)) % 360.0
    # Tiny negative angles round up to exactly 360 under %
    if bearing >= 360.0:
        bearing = 0.0
    return bearing


def speed_kmh(prev: Sample, curr: Sample) -> float:
    """
    Calculate the average speed between two consecutive samples.

    Duplicate or out-of-order timestamps yield 0 instead of dividing by a
    non-positive elapsed time.

    Args:
        prev: Earlier sample
        curr: Later sample

    Returns:
        Speed in km/h, always finite and non-negative
    """
    elapsed_seconds = (curr.timestamp - prev.timestamp) / 1000.0
    if elapsed_seconds <= 0:
        return 0.0

    speed = distance_meters(prev, curr) / elapsed_seconds * 3.6
    if not math.isfinite(speed):
        return 0.0
    return speed


def instantaneous_speed_kmh(route: Sequence[Sample], cursor: int) -> float:
    """Speed over the two most recent samples at cursor; 0 when there is no previous sample."""
    if cursor <= 0 or cursor >= len(route):
        return 0.0
    return speed_kmh(route[cursor - 1], route[cursor])


def remaining_distance_meters(route: Sequence[Sample], cursor: int) -> float:
    """Sum of segment distances from cursor to the last sample."""
    total = 0.0
    for i in range(max(cursor, 0), len(route) - 1):
        total += distance_meters(route[i], route[i + 1])
    return total


def eta_from_samples(route: Sequence[Sample], cursor: int) -> Optional[timedelta]:
    """
    Estimate the remaining travel time, assuming the current speed holds.

    The remaining distance is the cumulative distance over the unvisited
    segments; it is divided by the instantaneous speed at the cursor.

    Args:
        route: Ordered samples
        cursor: Index of the current sample

    Returns:
        Remaining duration, or None when the route is complete or the
        vehicle is not moving
    """
    if cursor >= len(route) - 1:
        return None

    speed_ms = instantaneous_speed_kmh(route, cursor) / 3.6
    if speed_ms <= 0:
        return None

    remaining = remaining_distance_meters(route, cursor)
    seconds = remaining / speed_ms

    # A crawl over a long remainder can exceed what timedelta represents
    if seconds >= timedelta.max.total_seconds():
        return timedelta.max
    return timedelta(seconds=seconds)


def progress_pct(cursor: int, n: int) -> float:
    """Percentage of the route covered at cursor; 0 for routes of fewer than two samples."""
    if n <= 1:
        return 0.0
    if cursor >= n - 1:
        return 100.0
    return max(cursor, 0) / (n - 1) * 100.0


def format_eta(eta: Optional[timedelta]) -> str:
    """
    Render an ETA for display.

    Returns:
        "N/A" for a missing estimate, otherwise e.g. "1h 02m 03s", "2m 05s" or "42s"
    """
    if eta is None:
        return ETA_UNAVAILABLE

    total_seconds = int(round(eta.total_seconds()))
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)

    if hours:
        return f"{hours}h {minutes:02d}m {seconds:02d}s"
    if minutes:
        return f"{minutes}m {seconds:02d}s"
    return f"{seconds}s"
