"""Client utilities for the Yelp Fusion business search endpoint."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import requests

from nearbite.models import Address, Category, Restaurant, SearchResponse

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

RESULT_LIMIT = 20
REQUEST_TIMEOUT = 10


class FetchError(RuntimeError):
    """Base class for failures while fetching restaurants."""


class NetworkError(FetchError):
    """Raised when the search endpoint could not be reached."""


class HttpError(FetchError):
    """Raised when the search endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"search endpoint returned HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class DecodeError(FetchError):
    """Raised when the response body does not match the expected shape."""


def serialize_categories(categories: Iterable[str]) -> Optional[str]:
    keys = sorted({key.strip().lower() for key in categories if key and key.strip()})
    return ",".join(keys) or None


def build_search_params(
    latitude: float,
    longitude: float,
    term: Optional[str] = None,
    categories: Iterable[str] = (),
) -> Dict[str, Any]:
    """Construct query parameters for a business search around a coordinate."""
    if not _is_coordinate(latitude, longitude):
        raise ValueError(f"Invalid coordinate: latitude={latitude!r} longitude={longitude!r}")

    params: Dict[str, Any] = {
        "latitude": latitude,
        "longitude": longitude,
        "limit": RESULT_LIMIT,
    }
    if term:
        params["term"] = term
    serialized = serialize_categories(categories)
    if serialized:
        params["categories"] = serialized
    return params


class SearchClient:
    """Issues one authenticated GET per search and decodes the businesses list."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._session = session

    @classmethod
    def from_settings(cls, settings) -> "SearchClient":
        return cls(
            api_key=settings.yelp_api_key,
            base_url=settings.search_url,
            timeout=settings.request_timeout,
        )

    def search(
        self,
        latitude: float,
        longitude: float,
        term: Optional[str] = None,
        categories: Iterable[str] = (),
    ) -> SearchResponse:
        params = build_search_params(latitude, longitude, term, categories)
        headers = {"Authorization": f"Bearer {self._api_key}", "Accept": "application/json"}
        session = self._session if self._session is not None else _SESSION

        logger.info(
            "Searching restaurants lat=%s lon=%s term=%s categories=%s",
            latitude,
            longitude,
            term,
            params.get("categories"),
        )
        try:
            response = session.get(self._base_url, params=params, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("Search request failed: %s", exc)
            raise NetworkError(str(exc)) from exc

        if not (200 <= response.status_code < 300):
            logger.error(
                "Search endpoint returned non-2xx status (%s): %s", response.status_code, response.text[:500]
            )
            raise HttpError(response.status_code, response.text[:500])

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeError(f"response body is not JSON: {exc}") from exc

        result = parse_search_response(payload)
        logger.info("Decoded %d restaurants from search response.", len(result.businesses))
        return result


def parse_search_response(payload: Any) -> SearchResponse:
    """Decode `{"businesses": [...]}`; any malformed record fails the whole batch."""
    if not isinstance(payload, dict):
        raise DecodeError("response body is not a JSON object")
    businesses = payload.get("businesses")
    if not isinstance(businesses, list):
        raise DecodeError("response is missing the businesses array")

    restaurants: List[Restaurant] = []
    for index, raw in enumerate(businesses):
        if not isinstance(raw, dict):
            raise DecodeError(f"businesses[{index}] is not an object")
        restaurants.append(_parse_business(raw, index))
    return SearchResponse(businesses=tuple(restaurants))


def _parse_business(raw: Dict[str, Any], index: int) -> Restaurant:
    business_id = _require_str(raw, "id", index)
    name = _require_str(raw, "name", index)
    rating = _require_number(raw, "rating", index)
    distance = _require_number(raw, "distance", index)
    if not 0.0 <= rating <= 5.0:
        raise DecodeError(f"businesses[{index}].rating out of range: {rating}")
    if distance < 0:
        raise DecodeError(f"businesses[{index}].distance is negative: {distance}")

    location = raw.get("location")
    if not isinstance(location, dict):
        raise DecodeError(f"businesses[{index}].location is missing")

    raw_categories = raw.get("categories")
    if not isinstance(raw_categories, list):
        raise DecodeError(f"businesses[{index}].categories is missing")
    categories = []
    for entry in raw_categories:
        title = entry.get("title") if isinstance(entry, dict) else None
        if not isinstance(title, str):
            raise DecodeError(f"businesses[{index}].categories has an entry without a title")
        categories.append(Category(title=title))

    return Restaurant(
        id=business_id,
        name=name,
        rating=rating,
        distance_meters=distance,
        price=_optional_str(raw.get("price")),
        image_url=_optional_str(raw.get("image_url")),
        categories=tuple(categories),
        address=Address(
            line1=_optional_str(location.get("address1")),
            city=_optional_str(location.get("city")),
        ),
    )


def _require_str(raw: Dict[str, Any], key: str, index: int) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise DecodeError(f"businesses[{index}].{key} is missing")
    return value


def _require_number(raw: Dict[str, Any], key: str, index: int) -> float:
    value = raw.get(key)
    # bool is an int subclass; JSON true is not a rating.
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise DecodeError(f"businesses[{index}].{key} is missing or not numeric")
    return float(value)


def _optional_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _is_coordinate(latitude: Any, longitude: Any) -> bool:
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    return math.isfinite(lat) and math.isfinite(lon) and -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0
