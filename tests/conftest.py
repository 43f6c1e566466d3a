from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from config import Settings
from system import BookRentalSystem, get_system

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    return mongomock.MongoClient().book_rental


@pytest.fixture
def settings():
    return Settings(overdue_scan_interval_seconds=0, jwt_secret="test-secret")


@pytest.fixture
def system(db, settings, clock):
    return BookRentalSystem(db, settings, clock)


@pytest.fixture
def client(system):
    main.app.dependency_overrides[get_system] = lambda: system
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def renter():
    def make(user_id="u1", name="Rina"):
        return {"user_id": user_id, "renter_name": name, "renter_address": "12 Lake Rd", "renter_phone": "01700000000"}
    return make
