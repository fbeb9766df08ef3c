# tests/conftest.py
import os
import tempfile
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from deals_pipeline.db import Base, get_db
from deals_pipeline.main import app
from deals_pipeline.models import Booking
from deals_pipeline.scheduler import BookingScheduler, SchedulerConfig

TENANT = "t-1"
COUNSELLOR = "c-1"
# Fixed "now" for scheduler tests; bookings are laid out on the following day.
NOW = datetime(2026, 10, 19, 8, 0)
DAY = datetime(2026, 10, 20)


@pytest.fixture(scope="function")
def session_factory():
    os.environ["SKIP_DB_INIT"] = "1"

    # temp DB
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    db_url = f"sqlite:///{tmp.name}"

    # test engine / Session
    engine = create_engine(db_url, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        engine.dispose()
        os.unlink(tmp.name)

@pytest.fixture(scope="function")
def test_db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture(scope="function")
def client(test_db_session):
    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()

@pytest.fixture
def clock():
    """Settable clock; call clock.set(dt) to move time."""
    class _Clock:
        now = NOW

        def __call__(self):
            return self.now

        def set(self, value):
            self.now = value

    return _Clock()

@pytest.fixture
def scheduler(test_db_session, clock):
    return BookingScheduler(test_db_session, config=SchedulerConfig(), clock=clock)

# —— Factories ——
@pytest.fixture
def make_booking(scheduler):
    def _make_booking(at, tenant_id=TENANT, counsellor=COUNSELLOR, lead_id="l-1"):
        return scheduler.create_booking(
            tenant_id=tenant_id,
            lead_id=lead_id,
            assigned_user_id=counsellor,
            booking_type="consultation",
            booking_source="web",
            scheduled_at=at,
            created_by="u-admin",
        )
    return _make_booking

@pytest.fixture
def make_deleted_booking(test_db_session):
    def _make_deleted_booking(at, tenant_id=TENANT, counsellor=COUNSELLOR):
        b = Booking(
            tenant_id=tenant_id,
            lead_id="l-deleted",
            assigned_user_id=counsellor,
            scheduled_at=at,
            buffer_until=at + timedelta(minutes=15),
            status="scheduled",
            is_deleted=True,
        )
        test_db_session.add(b)
        test_db_session.commit()
        return b
    return _make_deleted_booking
