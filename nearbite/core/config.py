"""Configuration helpers for the restaurant search session.

Environment variables are the only way to provide credentials: `YELP_API_KEY`
must never be hardcoded, and `YELP_SEARCH_URL` lets us point the client at a
sandbox or a recorded fixture server.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_URL = "https://api.yelp.com/v3/businesses/search"


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    yelp_api_key: str
    search_url: str = DEFAULT_SEARCH_URL
    request_timeout: float = 10.0
    max_workers: int = 4
    default_coordinate: Optional[Tuple[float, float]] = None
    port: int = 8080
    log_level: str = "INFO"


def _get_required_env(name: str) -> str:
    value = os.getenv(name)
    if not value or not value.strip():
        raise ConfigError(f"{name} must be set in the environment for restaurant searches to run.")
    return value.strip()


def _get_number_env(name: str, default: str, cast):
    raw = os.getenv(name) or default
    try:
        value = cast(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from exc
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}.")
    return value


def _parse_default_coordinate() -> Optional[Tuple[float, float]]:
    raw_lat = os.getenv("DEFAULT_LATITUDE")
    raw_lon = os.getenv("DEFAULT_LONGITUDE")
    if not raw_lat and not raw_lon:
        return None
    if not raw_lat or not raw_lon:
        logger.warning("DEFAULT_LATITUDE and DEFAULT_LONGITUDE must be set together; ignoring default location.")
        return None
    try:
        latitude = float(raw_lat)
        longitude = float(raw_lon)
    except ValueError:
        logger.warning("Default location is not numeric (lat=%s lon=%s); ignoring it.", raw_lat, raw_lon)
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)) or abs(latitude) > 90 or abs(longitude) > 180:
        logger.warning("Default location is out of range (lat=%s lon=%s); ignoring it.", raw_lat, raw_lon)
        return None
    return latitude, longitude


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load, validate and cache settings to avoid repeated env lookups."""
    load_dotenv()

    yelp_api_key = _get_required_env("YELP_API_KEY")
    search_url = os.getenv("YELP_SEARCH_URL") or DEFAULT_SEARCH_URL
    request_timeout = _get_number_env("SEARCH_TIMEOUT_SECONDS", "10", float)
    max_workers = _get_number_env("SESSION_MAX_WORKERS", "4", int)
    port = _get_number_env("PORT", "8080", int)
    log_level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

    return Settings(
        yelp_api_key=yelp_api_key,
        search_url=search_url,
        request_timeout=request_timeout,
        max_workers=max_workers,
        default_coordinate=_parse_default_coordinate(),
        port=port,
        log_level=log_level,
    )
