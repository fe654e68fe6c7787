import argparse
import logging

import pytest

from routeplay.geometry import Sample
from routeplay.metrics import collect_metrics, log_metrics
from routeplay.route import Route


def test_collect_metrics_constant_speed():
    route = Route(
        [Sample(latitude=0.0, longitude=i * 0.001, timestamp=i * 10000) for i in range(5)]
    )
    metrics = collect_metrics(route)

    assert metrics.point_count == 5
    assert metrics.total_distance_m == pytest.approx(4 * 111.19, rel=1e-3)
    assert metrics.duration_s == 40.0
    assert metrics.average_speed_kmh == pytest.approx(40.03, abs=0.05)
    assert metrics.max_speed_kmh == pytest.approx(metrics.average_speed_kmh, rel=1e-6)
    assert metrics.duplicate_timestamps == 0
    assert metrics.out_of_order_timestamps == 0


def test_collect_metrics_counts_timestamp_anomalies():
    route = Route(
        [
            Sample(latitude=0.0, longitude=0.0, timestamp=0),
            Sample(latitude=0.0, longitude=0.001, timestamp=0),
            Sample(latitude=0.0, longitude=0.002, timestamp=10000),
            Sample(latitude=0.0, longitude=0.003, timestamp=5000),
        ]
    )
    metrics = collect_metrics(route)

    assert metrics.duplicate_timestamps == 1
    assert metrics.out_of_order_timestamps == 1
    assert metrics.max_speed_kmh == pytest.approx(111.19 / 10 * 3.6, rel=1e-3)


def test_collect_metrics_empty_route():
    metrics = collect_metrics(Route([]))
    assert metrics.point_count == 0
    assert metrics.total_distance_m == 0.0
    assert metrics.average_speed_kmh == 0.0


def test_log_metrics_only_when_requested(caplog):
    route = Route(
        [Sample(latitude=0.0, longitude=i * 0.001, timestamp=i * 1000) for i in range(3)]
    )
    metrics = collect_metrics(route)

    with caplog.at_level(logging.DEBUG, logger="routeplay.metrics"):
        log_metrics(metrics, argparse.Namespace(metrics=False))
    assert caplog.text == ""

    with caplog.at_level(logging.DEBUG, logger="routeplay.metrics"):
        log_metrics(metrics, argparse.Namespace(metrics=True))
    assert "=== ROUTEPLAY_METRICS ===" in caplog.text
    assert "point_count=3" in caplog.text
    assert "=== END_ROUTEPLAY_METRICS ===" in caplog.text
