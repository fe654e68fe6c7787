#!/usr/bin/env python3
"""
Recorded route samples.
"""

from typing import NamedTuple, Tuple


class Sample(NamedTuple):
    """One recorded point: a geographic position and its epoch-millisecond timestamp."""

    latitude: float
    longitude: float
    timestamp: int

    @property
    def lat(self) -> float:
        return self.latitude

    @property
    def lng(self) -> float:
        return self.longitude

    def as_pair(self) -> Tuple[float, float]:
        """Return the (latitude, longitude) pair used for map drawing."""
        return (self.latitude, self.longitude)
