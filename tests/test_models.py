from nearbite.models import FetchFailure, Restaurant, SessionState


def test_distance_miles_conversion():
    restaurant = Restaurant(id="a", name="A", rating=4.0, distance_meters=1000.0)
    assert abs(restaurant.distance_miles - 0.621371) < 1e-9
    assert restaurant.display_distance == "0.6 mi"


def test_optional_fields_default_to_absent():
    restaurant = Restaurant(id="a", name="A", rating=4.0, distance_meters=0.0)
    assert restaurant.price is None
    assert restaurant.image_url is None
    assert restaurant.categories == ()
    assert restaurant.address.line1 is None
    assert restaurant.address.city is None


def test_session_state_status():
    restaurant = Restaurant(id="a", name="A", rating=4.0, distance_meters=0.0)

    assert SessionState().status == "idle"
    assert SessionState(is_loading=True).status == "loading"
    assert SessionState(has_fetched=True).status == "empty"
    assert SessionState(results=(restaurant,), has_fetched=True).status == "results"
    assert SessionState(last_error=FetchFailure(kind="network", message="down")).status == "error"
