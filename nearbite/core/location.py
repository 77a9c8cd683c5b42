"""Location sources consumed by the result session."""

from __future__ import annotations

import logging
import math
import threading
from typing import Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


class LocationUnavailable(RuntimeError):
    """Raised when no authorized coordinate is known."""


class LocationProvider(Protocol):
    def current_coordinate(self) -> Optional[Coordinate]:
        ...


def validate_coordinate(latitude: float, longitude: float) -> Coordinate:
    lat = float(latitude)
    lon = float(longitude)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError("latitude and longitude must be finite")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"longitude out of range: {lon}")
    return lat, lon


class StaticLocationProvider:
    """Holds the last coordinate reported by the device, or nothing if unauthorized."""

    def __init__(self, coordinate: Optional[Coordinate] = None) -> None:
        self._lock = threading.Lock()
        self._coordinate = validate_coordinate(*coordinate) if coordinate is not None else None

    def current_coordinate(self) -> Optional[Coordinate]:
        with self._lock:
            return self._coordinate

    def update(self, latitude: float, longitude: float) -> Coordinate:
        coordinate = validate_coordinate(latitude, longitude)
        with self._lock:
            self._coordinate = coordinate
        logger.info("Location updated to lat=%s lon=%s", coordinate[0], coordinate[1])
        return coordinate

    def clear(self) -> None:
        with self._lock:
            self._coordinate = None
        logger.info("Location cleared; searches will fail until a new coordinate arrives.")
