import pytest
import math
from hypothesis import given, strategies as st, assume
from routeplay.geometry import Sample
from routeplay.geo_metrics import (
    distance_meters,
    calculate_bearing,
    speed_kmh,
    eta_from_samples,
    progress_pct,
)
from routeplay.engine import PlaybackEngine, PlaybackState
from routeplay.route import Route
from routeplay.scheduler import ManualScheduler

# Strategy for valid GPS coordinates
valid_lat = st.floats(-90.0, 90.0)
valid_lon = st.floats(-180.0, 180.0)
valid_timestamp = st.integers(0, 4_000_000_000_000)
valid_sample = st.builds(
    Sample, latitude=valid_lat, longitude=valid_lon, timestamp=valid_timestamp
)


def _sorted_samples(samples):
    """Reorder timestamps so the route is chronological."""
    timestamps = sorted(s.timestamp for s in samples)
    return [s._replace(timestamp=t) for s, t in zip(samples, timestamps)]


class TestDistanceProperties:

    @given(valid_sample, valid_sample)
    def test_distance_is_non_negative(self, a, b):
        """Distance between any two samples is always non-negative."""
        assert distance_meters(a, b) >= 0

    @given(valid_sample)
    def test_distance_to_self_is_zero(self, a):
        """Distance from a sample to itself is always zero."""
        assert distance_meters(a, a) == 0

    @given(valid_sample, valid_sample)
    def test_distance_is_symmetric(self, a, b):
        """Distance from A to B equals distance from B to A."""
        assert distance_meters(a, b) == pytest.approx(distance_meters(b, a), abs=1e-6)

    @given(valid_sample, valid_sample)
    def test_distance_never_exceeds_half_circumference(self, a, b):
        assert distance_meters(a, b) <= math.pi * 6371000.0 + 1e-6


class TestBearingProperties:

    @given(valid_sample, valid_sample)
    def test_bearing_range(self, a, b):
        """Bearing is always in range [0, 360)."""
        bearing = calculate_bearing(a, b)
        assert 0 <= bearing < 360


class TestSpeedProperties:

    @given(valid_sample, valid_sample)
    def test_speed_is_finite_and_non_negative(self, prev, curr):
        """Speed is never negative, NaN or infinite, whatever the timestamps."""
        speed = speed_kmh(prev, curr)
        assert speed >= 0
        assert math.isfinite(speed)

    @given(valid_sample, valid_sample)
    def test_speed_is_zero_without_elapsed_time(self, prev, curr):
        curr = curr._replace(timestamp=prev.timestamp)
        assert speed_kmh(prev, curr) == 0.0


class TestProgressProperties:

    @given(st.integers(2, 10_000))
    def test_progress_endpoints(self, n):
        assert progress_pct(0, n) == 0
        assert progress_pct(n - 1, n) == 100

    @given(st.integers(2, 500), st.data())
    def test_progress_monotonic(self, n, data):
        cursor = data.draw(st.integers(0, n - 2))
        assert progress_pct(cursor, n) <= progress_pct(cursor + 1, n)

    @given(st.integers(0, 100))
    def test_single_sample_progress_is_zero(self, cursor):
        assert progress_pct(cursor, 1) == 0


class TestEtaProperties:

    @given(st.lists(valid_sample, min_size=1, max_size=30))
    def test_eta_is_none_or_non_negative(self, samples):
        samples = _sorted_samples(samples)
        for cursor in range(len(samples)):
            eta = eta_from_samples(samples, cursor)
            assert eta is None or eta.total_seconds() >= 0
        assert eta_from_samples(samples, len(samples) - 1) is None


class TestEngineProperties:

    @given(
        st.lists(valid_sample, min_size=1, max_size=20),
        st.lists(
            st.sampled_from(["play", "pause", "reset", "tick", "advance"]), max_size=40
        ),
    )
    def test_reset_always_rewinds(self, samples, commands):
        """After reset() the cursor is 0 and playback is stopped, whatever came before."""
        scheduler = ManualScheduler()
        engine = PlaybackEngine(Route(_sorted_samples(samples)), scheduler, rate_ms=1000)

        for command in commands:
            if command == "advance":
                scheduler.advance(1000)
            else:
                getattr(engine, command)()
            assert 0 <= engine.cursor <= len(samples) - 1

        engine.reset()
        assert engine.cursor == 0
        assert engine.playing is False
        assert engine.state == PlaybackState.IDLE
        assert scheduler.pending() == 0

    @given(st.lists(valid_sample, min_size=2, max_size=30))
    def test_ticks_advance_by_one_until_finished(self, samples):
        scheduler = ManualScheduler()
        engine = PlaybackEngine(Route(_sorted_samples(samples)), scheduler, rate_ms=500)

        engine.play()
        for expected in range(1, len(samples)):
            assert engine.playing
            scheduler.advance(500)
            assert engine.cursor == expected

        assert engine.state == PlaybackState.FINISHED
        assert engine.playing is False
        scheduler.advance(5000)
        assert engine.cursor == len(samples) - 1
