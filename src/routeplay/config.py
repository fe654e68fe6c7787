from dataclasses import dataclass

from .engine import DEFAULT_RATE_MS
from .route import DEFAULT_FETCH_TIMEOUT


@dataclass
class RouteplayConfig:
    """Configuration for the routeplay CLI."""

    rate_ms: int = DEFAULT_RATE_MS
    min_rate_ms: int = 500
    max_rate_ms: int = 3000
    bbox_buffer: float = 60.0
    timeout: float = DEFAULT_FETCH_TIMEOUT
    log_level: str = "WARNING"
    metrics: bool = False
