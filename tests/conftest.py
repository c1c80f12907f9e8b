# tests/conftest.py
import os
import tempfile

# Settings are read at import time; give them something before app modules load
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.gettempdir(), "evcharge_test_default.db"))

import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.api.deps import get_clock
from app.core.clock import FrozenClock
from app.core.security import create_access_token, hash_password
from app.db.session import Base, get_db, make_engine
from app.main import app
from app.models.booking import Booking, BookingStatus
from app.models.ev_owner import EVOwner
from app.models.station import ChargingStation
from app.models.user import User, ROLE_BACKOFFICE, ROLE_OPERATOR, ROLE_OWNER
from app.services.slot_grid import normalize_day

# Fixed "now" for every test: 2026-03-02 08:00 UTC (a Monday)
NOW = datetime(2026, 3, 2, 8, 0, 0)


@pytest.fixture(scope="function")
def engine():
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    eng = make_engine(f"sqlite:///{tmp.name}")
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()
        os.unlink(tmp.name)


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def test_db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture(scope="function")
def client(test_db_session, clock):
    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# Factories
@pytest.fixture
def make_user(test_db_session):
    def _make_user(username="admin", role=ROLE_BACKOFFICE, nic=None, is_active=True):
        u = User(
            id=str(uuid.uuid4()),
            username=username,
            email=f"{username}@example.com",
            full_name=username.title(),
            role=role,
            nic=nic,
            password_hash=hash_password("secret123"),
            is_active=is_active,
        )
        test_db_session.add(u)
        test_db_session.commit()
        return u
    return _make_user


@pytest.fixture
def make_owner(test_db_session):
    def _make_owner(nic="200012345678", is_active=True):
        o = EVOwner(nic=nic, first_name="Nimal", last_name="Perera", email=f"{nic}@example.com", is_active=is_active)
        test_db_session.add(o)
        test_db_session.commit()
        return o
    return _make_owner


@pytest.fixture
def make_station(test_db_session):
    def _make_station(station_id="st-1", charging_points=3, operator=None, is_active=True):
        s = ChargingStation(
            id=station_id,
            name=f"Station {station_id}",
            location="Colombo",
            station_type="DC",
            charging_points=charging_points,
            operator_user_id=operator.id if operator else None,
            is_active=is_active,
        )
        test_db_session.add(s)
        test_db_session.commit()
        return s
    return _make_station


@pytest.fixture
def make_booking(test_db_session):
    counter = {"n": 0}

    def _make_booking(station_id="st-1", nic="200012345678", point=1, start=None, status=BookingStatus.APPROVED):
        counter["n"] += 1
        start = start or (NOW + timedelta(days=1)).replace(hour=10)
        b = Booking(
            id=str(uuid.uuid4()),
            booking_reference=f"EVB-TEST-{counter['n']:04d}",
            ev_owner_nic=nic,
            charging_station_id=station_id,
            charging_point_number=point,
            booking_date=normalize_day(start),
            time_slot=start.hour,
            start_time=start,
            end_time=start + timedelta(minutes=60),
            duration_minutes=60,
            status=status,
            created_at=NOW - timedelta(hours=1),
            updated_at=NOW - timedelta(hours=1),
        )
        test_db_session.add(b)
        test_db_session.commit()
        return b
    return _make_booking


@pytest.fixture
def auth():
    def _auth(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
    return _auth


@pytest.fixture
def world(make_user, make_owner, make_station):
    """Backoffice admin, station operator, one owner with a login, one 3-point station."""
    admin = make_user("admin", ROLE_BACKOFFICE)
    operator = make_user("operator", ROLE_OPERATOR)
    owner = make_owner("200012345678")
    owner_user = make_user("owner", ROLE_OWNER, nic=owner.nic)
    station = make_station("st-1", charging_points=3, operator=operator)
    return {
        "admin": admin,
        "operator": operator,
        "owner": owner,
        "owner_user": owner_user,
        "station": station,
    }
