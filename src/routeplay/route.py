#!/usr/bin/env python3
"""
Route data model for playback.
"""

from datetime import timezone
from typing import Any, Iterator, List, Optional, Sequence, TextIO, Tuple
import json
import logging
from math import cos, isfinite, radians
import gpxpy
import gpxpy.gpx
import requests

from .geometry import Sample
from .geo_metrics import distance_meters

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30


class RouteValidationError(ValueError):
    """Raised when route samples fail validation checks."""

    pass


class Route:
    """An immutable, chronologically ordered sequence of recorded samples."""

    def __init__(self, samples: Sequence[Sample]):
        """Initializes a Route object.

        An empty sequence is allowed; it is the degraded state in which every
        playback command is a no-op.

        Args:
            samples: Samples in chronological order.

        Raises:
            RouteValidationError: If a coordinate is outside the valid range.
        """
        for i, sample in enumerate(samples):
            if not -90.0 <= sample.latitude <= 90.0:
                raise RouteValidationError(
                    f"Route point {i} has latitude {sample.latitude} outside [-90, 90]"
                )
            if not -180.0 <= sample.longitude <= 180.0:
                raise RouteValidationError(
                    f"Route point {i} has longitude {sample.longitude} outside [-180, 180]"
                )

        self.samples: Tuple[Sample, ...] = tuple(samples)
        self.bbox: Optional[Tuple[float, float, float, float]] = None

        # Out-of-order timestamps are kept; speed over them is reported as 0
        for i in range(1, len(self.samples)):
            if self.samples[i].timestamp < self.samples[i - 1].timestamp:
                logger.warning(
                    f"Route timestamps go backwards between points {i-1} and {i} "
                    f"({self.samples[i-1].timestamp} -> {self.samples[i].timestamp})"
                )

    def get_bbox(self, buffer: float = 0.0) -> Tuple[float, float, float, float]:
        """
        Get bounding box for this route, optionally with a buffer.

        Args:
            buffer: Buffer distance in meters (default: 0.0)

        Returns:
            Tuple of (south, west, north, east) in decimal degrees

        Raises:
            ValueError: If the route is empty
        """
        if not self.samples:
            raise ValueError("Cannot calculate bounding box of an empty route")

        if self.bbox is None:
            self.bbox = self._calculate_bbox()

        if buffer == 0.0:
            return self.bbox

        south, west, north, east = self.bbox

        # Convert buffer from m to approximate degrees
        # 1 degree latitude ≈ 111 km = 111000m
        # longitude varies by latitude, use average of the base bbox
        avg_lat = (south + north) / 2
        lat_buffer = buffer / 111000.0
        lon_buffer = buffer / (111000.0 * max(abs(cos(radians(avg_lat))), 1e-6))

        buffered = (
            max(-90.0, south - lat_buffer),
            max(-180.0, west - lon_buffer),
            min(90.0, north + lat_buffer),
            min(180.0, east + lon_buffer),
        )
        logger.debug(
            f"Buffered bounding box: ({buffered[0]:.4f}, {buffered[1]:.4f}, "
            f"{buffered[2]:.4f}, {buffered[3]:.4f}) with {buffer}m buffer"
        )
        return buffered

    def _calculate_bbox(self) -> Tuple[float, float, float, float]:
        """Calculate the unbuffered (south, west, north, east) bounding box."""
        latitudes = [sample.latitude for sample in self.samples]
        longitudes = [sample.longitude for sample in self.samples]
        return (min(latitudes), min(longitudes), max(latitudes), max(longitudes))

    def coordinates(self) -> List[Tuple[float, float]]:
        """Return (latitude, longitude) pairs for the whole route."""
        return [sample.as_pair() for sample in self.samples]

    def travelled(self, cursor: int) -> List[Tuple[float, float]]:
        """Return (latitude, longitude) pairs for route[0..cursor], inclusive."""
        if not self.samples or cursor < 0:
            return []
        return [sample.as_pair() for sample in self.samples[: cursor + 1]]

    def cumulative_distances(self) -> List[float]:
        """Cumulative haversine distance in meters at each sample."""
        if not self.samples:
            return []

        distances = [0.0]
        for i in range(1, len(self.samples)):
            distances.append(
                distances[-1] + distance_meters(self.samples[i - 1], self.samples[i])
            )
        return distances

    def total_distance(self) -> float:
        """Total route length in meters."""
        distances = self.cumulative_distances()
        return distances[-1] if distances else 0.0

    def duration_ms(self) -> int:
        """Milliseconds between the first and last sample; 0 for fewer than two samples."""
        if len(self.samples) < 2:
            return 0
        return max(0, self.samples[-1].timestamp - self.samples[0].timestamp)

    @classmethod
    def from_payload(cls, records: Any) -> "Route":
        """
        Build a route from a list of {latitude, longitude, timestamp} records.

        Timestamps are epoch milliseconds. A malformed payload (not a list, a
        record missing a key, a non-numeric value or an out-of-range
        coordinate) yields an empty route.

        Args:
            records: Decoded JSON payload

        Returns:
            Route object, empty if the payload is malformed
        """
        if not isinstance(records, list):
            logger.warning(
                f"Route payload must be a list of records, got {type(records).__name__}"
            )
            return cls([])

        samples = []
        for i, record in enumerate(records):
            try:
                latitude = record["latitude"]
                longitude = record["longitude"]
                timestamp = record["timestamp"]
            except (KeyError, TypeError) as e:
                logger.warning(f"Malformed route record {i}: missing {e}")
                return cls([])

            if any(
                isinstance(value, bool) or not isinstance(value, (int, float))
                for value in (latitude, longitude, timestamp)
            ):
                logger.warning(f"Malformed route record {i}: non-numeric value")
                return cls([])

            try:
                finite = all(
                    isfinite(value) for value in (latitude, longitude, timestamp)
                )
            except OverflowError:
                finite = False
            if not finite:
                logger.warning(f"Malformed route record {i}: non-finite value")
                return cls([])

            samples.append(
                Sample(
                    latitude=float(latitude),
                    longitude=float(longitude),
                    timestamp=int(timestamp),
                )
            )

        try:
            route = cls(samples)
        except RouteValidationError as e:
            logger.warning(f"Malformed route payload: {e}")
            return cls([])

        logger.debug(f"Parsed {len(route)} samples from route payload")
        return route

    @classmethod
    def from_gpx(cls, file_input: TextIO) -> "Route":
        """
        Parse GPX file and concatenate all tracks/segments into a single route.

        Args:
            file_input: File-like object containing GPX data

        Returns:
            Route object, empty if a track point has no time or an
            out-of-range coordinate

        Raises:
            gpxpy.gpx.GPXException: If GPX file is malformed.
        """
        gpx_data = gpxpy.parse(file_input)

        samples = []
        for track in gpx_data.tracks:
            for segment in track.segments:
                for point in segment.points:
                    if point.time is None:
                        logger.warning(
                            "GPX track point without a time cannot be replayed"
                        )
                        return cls([])

                    point_time = point.time
                    if point_time.tzinfo is None:
                        point_time = point_time.replace(tzinfo=timezone.utc)

                    samples.append(
                        Sample(
                            latitude=point.latitude,
                            longitude=point.longitude,
                            timestamp=int(round(point_time.timestamp() * 1000)),
                        )
                    )

        try:
            route = cls(samples)
        except RouteValidationError as e:
            logger.warning(f"Invalid GPX track: {e}")
            return cls([])

        logger.debug(f"Parsed {len(route)} track points from GPX file")

        return route

    @classmethod
    def from_file(cls, filename: str) -> "Route":
        """
        Load a route from a GPX file or a JSON payload file.

        Args:
            filename: Path to a .gpx file, or a JSON file of route records

        Returns:
            Route object representing the route

        Raises:
            FileNotFoundError: If file doesn't exist.
            PermissionError: If file can't be read.
            json.JSONDecodeError: If a JSON file is malformed.
            gpxpy.gpx.GPXException: If GPX file is malformed.
        """
        logger.debug(f"Reading route file: {filename}")
        with open(filename, "r", encoding="utf-8") as f:
            if filename.lower().endswith(".gpx"):
                return cls.from_gpx(f)
            return cls.from_payload(json.load(f))

    @classmethod
    def from_url(cls, url: str, timeout: float = DEFAULT_FETCH_TIMEOUT) -> "Route":
        """
        Fetch a JSON route payload over HTTP.

        Raises:
            requests.exceptions.RequestException: On network, HTTP or decoding errors
        """
        logger.debug(f"Fetching route from {url}")
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        return cls.from_payload(response.json())

    def __len__(self) -> int:
        """Return number of samples in route."""
        return len(self.samples)

    def __getitem__(self, index):
        """Allow indexing into samples."""
        return self.samples[index]

    def __iter__(self) -> Iterator[Sample]:
        """Allow iteration over samples."""
        return iter(self.samples)
