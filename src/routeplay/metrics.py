"""
Module for collecting and logging metrics related to a recorded route.
"""

import argparse
import logging
from typing import NamedTuple

from .geo_metrics import speed_kmh
from .route import Route

logger = logging.getLogger(__name__)


class RouteMetrics(NamedTuple):
    """Container for route metrics data."""

    point_count: int
    total_distance_m: float
    duration_s: float
    average_speed_kmh: float
    max_speed_kmh: float
    duplicate_timestamps: int
    out_of_order_timestamps: int


def collect_metrics(route: Route) -> RouteMetrics:
    """
    Collect summary metrics for a route.

    Args:
        route: Route to analyze

    Returns:
        RouteMetrics containing all collected metrics
    """
    total_distance = route.total_distance()
    duration_s = route.duration_ms() / 1000.0

    max_speed = 0.0
    duplicates = 0
    out_of_order = 0

    for i in range(1, len(route)):
        prev, curr = route[i - 1], route[i]
        if curr.timestamp == prev.timestamp:
            duplicates += 1
        elif curr.timestamp < prev.timestamp:
            out_of_order += 1
        max_speed = max(max_speed, speed_kmh(prev, curr))

    average_speed = total_distance / duration_s * 3.6 if duration_s > 0 else 0.0

    return RouteMetrics(
        point_count=len(route),
        total_distance_m=total_distance,
        duration_s=duration_s,
        average_speed_kmh=average_speed,
        max_speed_kmh=max_speed,
        duplicate_timestamps=duplicates,
        out_of_order_timestamps=out_of_order,
    )


def log_metrics(metrics: RouteMetrics, args: argparse.Namespace) -> None:
    """
    Log detailed metrics for the route.

    Args:
        metrics: RouteMetrics containing collected metrics
        args: argparse.Namespace object containing settings like metrics flag
    """
    if not args.metrics:
        return

    logger.debug("=== ROUTEPLAY_METRICS ===")
    logger.debug(f"point_count={metrics.point_count}")
    logger.debug(f"total_distance_m={metrics.total_distance_m:.1f}")
    logger.debug(f"duration_s={metrics.duration_s:.1f}")
    logger.debug(f"average_speed_kmh={metrics.average_speed_kmh:.2f}")
    logger.debug(f"max_speed_kmh={metrics.max_speed_kmh:.2f}")

    if metrics.duplicate_timestamps > 0:
        logger.debug(f"duplicate_timestamps={metrics.duplicate_timestamps}")
    if metrics.out_of_order_timestamps > 0:
        logger.debug(f"out_of_order_timestamps={metrics.out_of_order_timestamps}")

    logger.debug("=== END_ROUTEPLAY_METRICS ===")
