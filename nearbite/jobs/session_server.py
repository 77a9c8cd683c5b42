"""HTTP entrypoint exposing one restaurant session to a presentation layer."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from nearbite.core.config import ConfigError, Settings, get_settings
from nearbite.core.location import StaticLocationProvider
from nearbite.core.session import ResultSession
from nearbite.models import Restaurant, SessionState
from nearbite.vendors.yelp_fusion import SearchClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def restaurant_payload(restaurant: Restaurant) -> Dict[str, Any]:
    entry = asdict(restaurant)
    entry["distance_miles"] = round(restaurant.distance_miles, 1)
    entry["display_distance"] = restaurant.display_distance
    return entry


def state_payload(state: SessionState) -> Dict[str, Any]:
    return {
        "status": state.status,
        "is_loading": state.is_loading,
        "last_error": asdict(state.last_error) if state.last_error else None,
        "selected_filters": sorted(state.selected_filters),
        "results": [restaurant_payload(r) for r in state.results],
    }


def create_app(session: ResultSession, location: StaticLocationProvider) -> Flask:
    app = Flask(__name__)

    @app.get("/healthz")
    def healthcheck() -> Any:
        return jsonify({"status": "ok"}), 200

    @app.get("/state")
    def get_state() -> Any:
        return jsonify({"data": state_payload(session.snapshot())}), 200

    @app.put("/location")
    def put_location() -> Any:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        missing = [f for f in ("latitude", "longitude") if payload.get(f) is None]
        if missing:
            return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400
        try:
            latitude, longitude = location.update(payload["latitude"], payload["longitude"])
        except (TypeError, ValueError) as exc:
            return jsonify({"error": f"invalid coordinate: {exc}"}), 400
        return jsonify({"data": {"latitude": latitude, "longitude": longitude}}), 200

    @app.delete("/location")
    def delete_location() -> Any:
        location.clear()
        return jsonify({"data": {"status": "cleared"}}), 200

    @app.post("/fetch")
    def enqueue_fetch() -> Any:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        term_raw = payload.get("term")
        if term_raw is not None and not isinstance(term_raw, str):
            return jsonify({"error": "term must be a string"}), 400
        term: Optional[str] = term_raw or None

        logger.info("Queueing restaurant fetch term=%s", term)
        session.fetch(term)
        return jsonify({"data": {"status": "queued"}}), 202

    @app.post("/filters/<key>")
    def toggle_filter(key: str) -> Any:
        try:
            filters = session.toggle_filter(key)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify({"data": {"selected_filters": sorted(filters)}}), 200

    @app.delete("/filters")
    def clear_filters() -> Any:
        session.clear_filters()
        return jsonify({"data": {"selected_filters": []}}), 200

    @app.get("/pick")
    def pick() -> Any:
        restaurant = session.pick_random()
        if restaurant is None:
            return jsonify({"error": "no restaurants to pick from"}), 404
        return jsonify({"data": restaurant_payload(restaurant)}), 200

    return app


def build_session(settings: Settings) -> tuple[ResultSession, StaticLocationProvider]:
    location = StaticLocationProvider(settings.default_coordinate)
    client = SearchClient.from_settings(settings)
    session = ResultSession(client, location, max_workers=settings.max_workers)
    return session, location


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper(), format=LOG_FORMAT)
    try:
        settings = get_settings()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    logging.getLogger().setLevel(settings.log_level)

    session, location = build_session(settings)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", settings.port)
    try:
        create_app(session, location).run(host="0.0.0.0", port=settings.port)
    finally:
        session.close()


if __name__ == "__main__":
    main()
