import random

import pytest

from nearbite.core.config import Settings
from nearbite.core.location import StaticLocationProvider
from nearbite.core.session import ResultSession
from nearbite.jobs import session_server
from nearbite.models import Address, Category, Restaurant, SearchResponse

RESTAURANT = Restaurant(
    id="tacos-1",
    name="Tacos El Gordo",
    rating=4.5,
    distance_meters=3218.68,
    price="$",
    categories=(Category(title="Mexican"),),
    address=Address(line1="123 Main St", city="San Diego"),
)


class ImmediateFuture:
    def __init__(self, value):
        self._value = value

    def result(self, timeout=None):
        return self._value

    def done(self):
        return True


class DummyExecutor:
    """Runs submitted work inline so endpoint tests are deterministic."""

    def submit(self, fn, *args):
        return ImmediateFuture(fn(*args))

    def shutdown(self, wait=True):
        pass


class DummyClient:
    def __init__(self):
        self.calls = []
        self.response = SearchResponse((RESTAURANT,))

    def search(self, latitude, longitude, term=None, categories=()):
        self.calls.append((latitude, longitude, term, set(categories)))
        return self.response


@pytest.fixture
def dummy_client():
    return DummyClient()


@pytest.fixture
def location():
    return StaticLocationProvider((32.7, -117.1))


@pytest.fixture
def session(dummy_client, location):
    return ResultSession(dummy_client, location, executor=DummyExecutor(), rng=random.Random(0))


@pytest.fixture
def client(session, location):
    return session_server.create_app(session, location).test_client()


def test_health_endpoint(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_state_starts_idle(client):
    data = client.get("/state").get_json()["data"]
    assert data["status"] == "idle"
    assert data["results"] == []
    assert data["last_error"] is None


def test_fetch_then_state_and_pick(client, dummy_client):
    response = client.post("/fetch", json={"term": "tacos"})
    assert response.status_code == 202
    assert response.get_json()["data"]["status"] == "queued"
    assert dummy_client.calls[0][2] == "tacos"

    data = client.get("/state").get_json()["data"]
    assert data["status"] == "results"
    entry = data["results"][0]
    assert entry["id"] == "tacos-1"
    assert entry["display_distance"] == "2.0 mi"
    assert entry["categories"] == [{"title": "Mexican"}]
    assert entry["address"] == {"line1": "123 Main St", "city": "San Diego"}
    assert entry["image_url"] is None

    picked = client.get("/pick")
    assert picked.status_code == 200
    assert picked.get_json()["data"]["name"] == "Tacos El Gordo"


def test_fetch_rejects_non_string_term(client, dummy_client):
    assert client.post("/fetch", json={"term": 42}).status_code == 400
    assert dummy_client.calls == []


def test_pick_without_results_is_404(client):
    assert client.get("/pick").status_code == 404


def test_filters_toggle_and_feed_next_fetch(client, dummy_client):
    assert client.post("/filters/Italian").get_json()["data"]["selected_filters"] == ["italian"]
    assert client.post("/filters/thai").get_json()["data"]["selected_filters"] == ["italian", "thai"]
    assert client.post("/filters/italian").get_json()["data"]["selected_filters"] == ["thai"]

    client.post("/fetch", json={})
    assert dummy_client.calls[0][3] == {"thai"}

    assert client.delete("/filters").get_json()["data"]["selected_filters"] == []


def test_location_endpoints(client, dummy_client, location):
    assert client.put("/location", json={}).status_code == 400
    assert client.put("/location", json={"latitude": 95, "longitude": 0}).status_code == 400
    assert client.put("/location", json={"latitude": "x", "longitude": 0}).status_code == 400

    response = client.put("/location", json={"latitude": 40.7, "longitude": -74.0})
    assert response.status_code == 200
    assert location.current_coordinate() == (40.7, -74.0)

    assert client.delete("/location").status_code == 200
    client.post("/fetch", json={})
    data = client.get("/state").get_json()["data"]
    assert data["status"] == "error"
    assert data["last_error"]["kind"] == "location_unavailable"
    assert dummy_client.calls == []


def test_build_session_uses_settings_location():
    settings = Settings(yelp_api_key="k", default_coordinate=(1.0, 2.0), max_workers=1)
    session, location = session_server.build_session(settings)
    try:
        assert location.current_coordinate() == (1.0, 2.0)
    finally:
        session.close()


def test_main_exits_on_config_error(monkeypatch):
    def missing():
        raise session_server.ConfigError("YELP_API_KEY must be set")

    monkeypatch.setattr(session_server, "get_settings", missing)
    with pytest.raises(SystemExit) as excinfo:
        session_server.main()
    assert excinfo.value.code == 2
