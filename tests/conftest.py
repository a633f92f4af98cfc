import os
import tempfile
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="swyft-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'swyft.db'}"
os.environ["WS_REQUIRE_AUTH"] = "false"
os.environ.pop("REDIS_HOST", None)
os.environ.pop("REDIS_PORT", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from swyft import auth  # noqa: E402
from swyft.config import get_settings  # noqa: E402
from swyft.database import Base, SessionLocal, engine  # noqa: E402
from swyft.main import app  # noqa: E402
from swyft.models import User  # noqa: E402
from swyft.schemas import RideCreate  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def ride_data():
    return {
        "passenger_name": "John Banda",
        "passenger_email": "john@passenger.com",
        "passenger_phone": "0772000000",
        "pickup": "Avondale Shops",
        "dropoff": "Harare Airport",
        "ride_type": "economy",
        "price": 18.5,
    }


@pytest.fixture
def make_ride(db, ride_data):
    from swyft import store

    def _make(**overrides):
        return store.create_ride(db, RideCreate(**{**ride_data, **overrides}))

    return _make


@pytest.fixture
def make_driver(db):
    def _make(email="sarah@driver.com", first_name="Sarah", last_name="Moyo",
              phone="0771000000", vehicle_plate="AFG 2231"):
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=auth.hash_password("5678"),
            role="driver",
            phone=phone,
            vehicle_plate=vehicle_plate,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make
