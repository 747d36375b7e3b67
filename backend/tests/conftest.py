# backend/tests/conftest.py
import os
import tempfile
from datetime import date, datetime, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert
from sqlalchemy.orm import sessionmaker

from salon_booking.database import build_engine, get_db
from salon_booking.dependencies import get_outbox
from salon_booking.main import app
from salon_booking.models import Base, Services, Specialists, WorkingHours, t_specialist_services
from salon_booking.services.booking import BookingManager
from salon_booking.services.identity import ClientSession
from salon_booking.services.locks import KeyedLockRegistry
from salon_booking.services.slots import BookingConfig

DAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 6, 12, 0)


def at(hh_mm: str, day: date = DAY) -> datetime:
    return datetime.combine(day, time.fromisoformat(hh_mm))


class RecordingOutbox:
    """Collects notification intents instead of pushing them to Redis."""

    def __init__(self):
        self.events = []

    def enqueue(self, reservation_id, audience, kind, payload):
        self.events.append((reservation_id, audience.value, kind, payload))

    def kinds(self, reservation_id=None):
        return [
            (audience, kind)
            for rid, audience, kind, _ in self.events
            if reservation_id is None or rid == reservation_id
        ]


class BrokenOutbox:
    def enqueue(self, reservation_id, audience, kind, payload):
        raise ConnectionError("redis is down")


@pytest.fixture(scope="function")
def engine():
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    eng = build_engine(f"sqlite:///{tmp.name}", lock_timeout=10)
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
def unreachable_session(tmp_path):
    """Session on a database file whose directory does not exist."""
    eng = build_engine(f"sqlite:///{tmp_path / 'missing' / 'booking.db'}", lock_timeout=0.1)
    session = sessionmaker(autocommit=False, autoflush=False, bind=eng)()
    try:
        yield session
    finally:
        session.close()
        eng.dispose()


@pytest.fixture
def outbox():
    return RecordingOutbox()


@pytest.fixture
def lock_registry():
    return KeyedLockRegistry()


@pytest.fixture
def make_manager(outbox, lock_registry):
    def _make_manager(db, outbox_=None, config=None, clock=lambda: NOW, lock_timeout=10):
        return BookingManager(
            db,
            outbox_ or outbox,
            config=config or BookingConfig(),
            locks=lock_registry,
            lock_timeout=lock_timeout,
            clock=clock,
        )
    return _make_manager


@pytest.fixture
def manager(test_db_session, make_manager):
    return make_manager(test_db_session)


@pytest.fixture
def client_session():
    return ClientSession(client_id="client-1", email="anna@example.com")


@pytest.fixture
def owner_session():
    return ClientSession(client_id="owner-1", email="owner@example.com", is_owner=True)


@pytest.fixture(scope="function")
def client(test_db_session, outbox):
    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_outbox] = lambda: outbox

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# —— Factories ——
@pytest.fixture
def make_service(test_db_session):
    def _make_service(name="Haircut", duration_min=60, price=30.0, is_active=1):
        s = Services(name=name, duration_min=duration_min, price=price, is_active=is_active)
        test_db_session.add(s)
        test_db_session.commit()
        return s
    return _make_service


@pytest.fixture
def make_specialist(test_db_session):
    def _make_specialist(display_name="Maria", is_active=1, services=()):
        sp = Specialists(display_name=display_name, is_active=is_active)
        test_db_session.add(sp)
        test_db_session.flush()
        for service in services:
            test_db_session.execute(
                insert(t_specialist_services).values(service_id=service.id, specialist_id=sp.id)
            )
        test_db_session.commit()
        return sp
    return _make_specialist


@pytest.fixture
def make_hours(test_db_session):
    def _make_hours(specialist, start="09:00", end="18:00", day=DAY, is_available=1):
        wh = WorkingHours(
            specialist_id=specialist.id,
            date=day,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            is_available=is_available,
        )
        test_db_session.add(wh)
        test_db_session.commit()
        return wh
    return _make_hours
