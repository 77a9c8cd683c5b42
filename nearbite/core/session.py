"""Result session: the single owner of fetched restaurants, filters and fetch status."""

from __future__ import annotations

import logging
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, FrozenSet, Iterable, List, Optional, Protocol, Tuple

from nearbite.core.location import LocationProvider, LocationUnavailable
from nearbite.models import FetchFailure, Restaurant, SearchResponse, SessionState
from nearbite.vendors.yelp_fusion import DecodeError, FetchError, HttpError, NetworkError

logger = logging.getLogger(__name__)

Listener = Callable[[SessionState], None]


class Searcher(Protocol):
    def search(
        self,
        latitude: float,
        longitude: float,
        term: Optional[str] = None,
        categories: Iterable[str] = (),
    ) -> SearchResponse:
        ...


def describe_failure(exc: BaseException) -> FetchFailure:
    """Map a fetch-path exception onto the error descriptor kept in session state."""
    if isinstance(exc, LocationUnavailable):
        return FetchFailure(kind="location_unavailable", message=str(exc) or "Current location is unavailable.")
    if isinstance(exc, HttpError):
        return FetchFailure(kind="http", message=str(exc), status_code=exc.status_code)
    if isinstance(exc, DecodeError):
        return FetchFailure(kind="decode", message=f"Unexpected response from search service: {exc}")
    if isinstance(exc, NetworkError):
        return FetchFailure(kind="network", message=f"Could not reach search service: {exc}")
    return FetchFailure(kind="network", message=f"Search failed: {exc}")


class ResultSession:
    """Fetch, filter and pick over the current restaurant list.

    Every state write happens under one lock and every reader gets an immutable
    SessionState. Fetches run on a thread pool; each attempt is tagged with a
    sequence number and only the completion of the newest attempt is applied,
    so a slow superseded response can never overwrite newer state. Listener
    notifications are delivered one at a time in state order.
    """

    def __init__(
        self,
        client: Searcher,
        location: LocationProvider,
        *,
        executor: Optional[ThreadPoolExecutor] = None,
        rng: Optional[random.Random] = None,
        max_workers: int = 4,
    ) -> None:
        self._client = client
        self._location = location
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="nearbite-fetch")
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._state = SessionState()
        self._issued_seq = 0
        self._version = 0
        self._listeners: List[Listener] = []
        # reentrant so a listener may mutate the session while being notified
        self._notify_lock = threading.RLock()
        self._delivered_version = 0

    # ---------- Reads ----------

    def snapshot(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def results(self):
        return self.snapshot().results

    @property
    def selected_filters(self):
        return self.snapshot().selected_filters

    @property
    def is_loading(self) -> bool:
        return self.snapshot().is_loading

    @property
    def last_error(self) -> Optional[FetchFailure]:
        return self.snapshot().last_error

    # ---------- Subscriptions ----------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a fresh snapshot after every transition."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes) -> Tuple[int, SessionState]:
        """Apply changes to the state; the caller must hold self._lock."""
        self._state = replace(self._state, **changes)
        self._version += 1
        return self._version, self._state

    def _notify(self, version: int, state: SessionState) -> None:
        # Deliveries are serialized and never go backwards: a snapshot older than
        # one already delivered is dropped.
        with self._notify_lock:
            if version <= self._delivered_version:
                logger.debug("Skipping outdated notification v%d", version)
                return
            self._delivered_version = version
            with self._lock:
                listeners = list(self._listeners)
            for listener in listeners:
                if self._delivered_version != version:
                    # a listener triggered a newer transition that was already delivered
                    break
                try:
                    listener(state)
                except Exception:  # noqa: BLE001
                    logger.exception("Session listener %r failed", listener)

    # ---------- Mutations ----------

    def fetch(self, term: Optional[str] = None) -> "Future[SessionState]":
        """Start a fetch without blocking; the future resolves to the state after completion."""
        coordinate = self._location.current_coordinate()

        with self._lock:
            self._issued_seq += 1
            seq = self._issued_seq
            filters = self._state.selected_filters
            if coordinate is None:
                version, state = self._commit(
                    is_loading=False,
                    last_error=describe_failure(LocationUnavailable("Current location is unavailable.")),
                )
            else:
                version, state = self._commit(is_loading=True, last_error=None)

        if coordinate is None:
            logger.warning("Fetch #%d skipped: no location available.", seq)
            self._notify(version, state)
            return _completed(state)

        logger.info("Fetch #%d started term=%s filters=%s", seq, term, sorted(filters))
        self._notify(version, state)
        latitude, longitude = coordinate
        try:
            return self._executor.submit(self._run_fetch, seq, latitude, longitude, term, filters)
        except RuntimeError as exc:
            logger.error("Fetch #%d could not be scheduled: %s", seq, exc)
            return _completed(self._complete(seq, failure=describe_failure(exc)))

    def _run_fetch(
        self,
        seq: int,
        latitude: float,
        longitude: float,
        term: Optional[str],
        filters: FrozenSet[str],
    ) -> SessionState:
        try:
            response = self._client.search(latitude, longitude, term=term, categories=filters)
        except FetchError as exc:
            logger.warning("Fetch #%d failed: %s", seq, exc)
            return self._complete(seq, failure=describe_failure(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Fetch #%d failed unexpectedly", seq)
            return self._complete(seq, failure=describe_failure(exc))
        return self._complete(seq, response=response)

    def _complete(
        self,
        seq: int,
        response: Optional[SearchResponse] = None,
        failure: Optional[FetchFailure] = None,
    ) -> SessionState:
        with self._lock:
            if seq != self._issued_seq:
                logger.debug("Discarding stale completion of fetch #%d", seq)
                return self._state
            if failure is not None:
                version, state = self._commit(is_loading=False, last_error=failure)
            else:
                version, state = self._commit(
                    results=response.businesses,
                    is_loading=False,
                    last_error=None,
                    has_fetched=True,
                )

        if failure is None:
            logger.info("Fetch #%d applied %d restaurants", seq, len(state.results))
        self._notify(version, state)
        return state

    def toggle_filter(self, key: str) -> FrozenSet[str]:
        """Flip a category key in the active filters; does not fetch."""
        normalized = (key or "").strip().lower()
        if not normalized:
            raise ValueError("filter key must be non-empty")

        with self._lock:
            filters = set(self._state.selected_filters)
            if normalized in filters:
                filters.remove(normalized)
            else:
                filters.add(normalized)
            version, state = self._commit(selected_filters=frozenset(filters))

        logger.debug("Filters now %s", sorted(state.selected_filters))
        self._notify(version, state)
        return state.selected_filters

    def clear_filters(self) -> FrozenSet[str]:
        with self._lock:
            version, state = self._commit(selected_filters=frozenset())
        self._notify(version, state)
        return state.selected_filters

    def pick_random(self) -> Optional[Restaurant]:
        """Uniform pick over the current results, or None when there are none."""
        results = self.snapshot().results
        if not results:
            return None
        return self._rng.choice(results)

    # ---------- Lifecycle ----------

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "ResultSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _completed(state: SessionState) -> "Future[SessionState]":
    done: Future = Future()
    done.set_result(state)
    return done
