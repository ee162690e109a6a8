import math

import pytest
from fastapi import status

from contact_manager.models import Contact
from contact_manager.search import (
    EARTH_RADIUS_MILES,
    filter_contacts,
    haversine_miles,
)

NEW_YORK = (40.7128, -74.0060)
LOS_ANGELES = (34.0522, -118.2437)


def make_contact(first, last, lat=0.0, lng=0.0, **fields):
    return Contact(
        first_name=first,
        last_name=last,
        latitude=lat,
        longitude=lng,
        email=fields.get("email", ""),
        address=fields.get("address", ""),
    )


@pytest.fixture()
def people():
    return [
        make_contact("Ann", "Lee", 40.758, -73.9855, address="Times Square, New York"),
        make_contact("Ben", "Leeds", 40.7357, -74.1724, email="ben@example.com"),
        make_contact("Cara", "Stone", 34.0522, -118.2437, address="Los Angeles, CA"),
        make_contact("Dan", "Lee"),
    ]


def test_haversine_between_new_york_and_los_angeles():
    distance = haversine_miles(*NEW_YORK, *LOS_ANGELES)
    assert distance == pytest.approx(2448, abs=10)
    assert haversine_miles(*LOS_ANGELES, *NEW_YORK) == pytest.approx(distance)


def test_haversine_same_point_is_zero():
    assert haversine_miles(*NEW_YORK, *NEW_YORK) == 0


def test_filter_by_name_is_case_insensitive(people):
    names = [c.first_name for c in filter_contacts(people, last_name="LEE")]
    assert names == ["Ann", "Ben", "Dan"]
    assert [c.first_name for c in filter_contacts(people, first_name="ca")] == ["Cara"]


def test_free_text_matches_email_and_address(people):
    assert [c.first_name for c in filter_contacts(people, q="example.com")] == ["Ben"]
    assert [c.first_name for c in filter_contacts(people, q="times")] == ["Ann"]


def test_radius_excludes_far_and_unlocated_contacts(people):
    nearby = filter_contacts(people, origin=NEW_YORK, radius=10)
    assert [c.first_name for c in nearby] == ["Ann", "Ben"]

    everywhere = filter_contacts(people, origin=NEW_YORK, radius=5000)
    assert "Dan" not in [c.first_name for c in everywhere]
    assert len(everywhere) == 3


def test_filters_combine(people):
    result = filter_contacts(people, last_name="lee", origin=NEW_YORK, radius=5)
    assert [c.first_name for c in result] == ["Ann"]


def test_no_filters_returns_everyone(people):
    assert filter_contacts(people) == people


def seed(db_session):
    db_session.add_all(
        [
            make_contact("Ann", "Lee", 40.758, -73.9855),
            make_contact("Cara", "Stone", 34.0522, -118.2437),
            make_contact("Dan", "Lee"),
        ]
    )
    db_session.commit()


def test_search_endpoint_by_coordinates(client, db_session):
    seed(db_session)
    response = client.get(
        "/contacts/api/search", params={"lat": 40.7128, "lng": -74.006, "radius": 25}
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 1
    assert body["contacts"][0]["firstName"] == "Ann"


def test_search_endpoint_by_address(client, db_session, geocoder):
    seed(db_session)
    response = client.get(
        "/contacts/api/search", params={"address": "Los Angeles, CA"}
    )
    assert [c["lastName"] for c in response.json()["contacts"]] == ["Stone"]
    assert geocoder.calls == ["Los Angeles, CA"]


def test_search_endpoint_by_name_only(client, db_session):
    seed(db_session)
    response = client.get("/contacts/api/search", params={"last_name": "lee"})
    assert response.json()["count"] == 2


def test_search_endpoint_unknown_address(client, db_session):
    seed(db_session)
    response = client.get("/contacts/api/search", params={"address": "Atlantis"})
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["success"] is False


def test_search_endpoint_rejects_bad_radius(client):
    response = client.get(
        "/contacts/api/search", params={"lat": 40.0, "lng": -74.0, "radius": 0}
    )
    assert response.status_code == 422


def test_haversine_near_antipodal_points():
    distance = haversine_miles(-78.1264, -51.2470, 78.1264, 128.7530)
    assert distance == pytest.approx(math.pi * EARTH_RADIUS_MILES, rel=1e-6)


def test_search_endpoint_from_far_side_of_the_globe(client, db_session):
    db_session.add(make_contact("Eve", "Far", 78.1264, 128.7530))
    db_session.commit()
    response = client.get(
        "/contacts/api/search", params={"lat": -78.1264, "lng": -51.2470}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["count"] == 0


def test_search_endpoint_requires_both_coordinates(client, db_session):
    seed(db_session)
    for params in ({"lat": 40.7128}, {"lng": -74.006}):
        response = client.get("/contacts/api/search", params=params)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "VALIDATION_FAILED"
