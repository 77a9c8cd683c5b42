"""Core data models shared by the search client and the result session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

METERS_TO_MILES = 0.000621371


@dataclass(frozen=True, slots=True)
class Category:
    title: str


@dataclass(frozen=True, slots=True)
class Address:
    line1: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Restaurant:
    """Normalized snapshot of a business returned by the local search API."""

    id: str
    name: str
    rating: float
    distance_meters: float
    price: Optional[str] = None
    image_url: Optional[str] = None
    categories: Tuple[Category, ...] = ()
    address: Address = field(default_factory=Address)

    @property
    def distance_miles(self) -> float:
        return self.distance_meters * METERS_TO_MILES

    @property
    def display_distance(self) -> str:
        return f"{self.distance_miles:.1f} mi"


@dataclass(frozen=True, slots=True)
class SearchResponse:
    businesses: Tuple[Restaurant, ...] = ()


@dataclass(frozen=True, slots=True)
class FetchFailure:
    """Human readable description of why the last fetch did not produce results."""

    kind: str
    message: str
    status_code: Optional[int] = None


@dataclass(frozen=True, slots=True)
class SessionState:
    """Immutable view of a ResultSession at one point in time."""

    results: Tuple[Restaurant, ...] = ()
    selected_filters: FrozenSet[str] = frozenset()
    is_loading: bool = False
    last_error: Optional[FetchFailure] = None
    has_fetched: bool = False

    @property
    def status(self) -> str:
        if self.is_loading:
            return "loading"
        if self.last_error is not None:
            return "error"
        if not self.has_fetched:
            return "idle"
        return "results" if self.results else "empty"
