# tests/conftest.py
import os
import sys

# Settings are cached on first import, so configure them before importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

sys.path.append(os.path.abspath("."))

import pytest
from fakeredis.aioredis import FakeRedis
from fastapi.testclient import TestClient

from contact_manager import crud
from contact_manager import session as session_module
from contact_manager.database import Base, SessionLocal, engine, get_db
from contact_manager.errors import UpstreamUnavailable
from contact_manager.geocoding import GeocodeResult, get_geocoder
from contact_manager.session import SessionStore
from main import app


# DB (SQLite in-memory, one shared connection)
@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# Sessions live in fakeredis instead of a real server
@pytest.fixture(autouse=True)
def session_store(monkeypatch):
    store = SessionStore(FakeRedis(decode_responses=True), expire_minutes=60)
    monkeypatch.setattr(session_module, "_session_store", store)
    return store


class FakeGeocoder:
    """Geocoder answering from a fixed table and recording its calls."""

    def __init__(self):
        self.results: dict[str, GeocodeResult] = {}
        self.calls: list[str] = []
        self.fail = False

    def add(self, address, latitude, longitude, formatted_address=None):
        self.results[address] = GeocodeResult(
            latitude=latitude,
            longitude=longitude,
            formatted_address=formatted_address or address,
        )

    async def geocode(self, address):
        self.calls.append(address)
        if self.fail:
            raise UpstreamUnavailable("Geocoding", "provider offline")
        result = self.results.get(address.strip())
        return [result] if result else []


@pytest.fixture()
def geocoder():
    fake = FakeGeocoder()
    fake.add(
        "1600 Pennsylvania Ave NW, Washington, DC",
        38.8977,
        -77.0365,
        "White House, 1600 Pennsylvania Avenue NW, Washington, DC 20500, USA",
    )
    fake.add("Times Square, New York", 40.758, -73.9855, "Times Square, Manhattan, NY")
    fake.add("Newark, NJ", 40.7357, -74.1724, "Newark, Essex County, NJ, USA")
    fake.add("Los Angeles, CA", 34.0522, -118.2437, "Los Angeles, CA, USA")
    return fake


# Client fixture: override DB and geocoder dependencies per test
@pytest.fixture()
def client(db_session, geocoder):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_geocoder] = lambda: geocoder

    with TestClient(app, follow_redirects=False) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def create_user(db_session):
    def _create(username="user", password="secret123"):
        return crud.create_user(db_session, username, password)

    return _create


@pytest.fixture()
def login(client):
    def _login(username, password="secret123"):
        response = client.post(
            "/auth/login", data={"username": username, "password": password}
        )
        assert response.status_code == 303
        assert "error=" not in response.headers["location"]
        return response

    return _login
