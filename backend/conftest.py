"""
Test configuration for the WardWatch alert service.
"""

import os
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Settings are read on import; point everything at SQLite before the app loads
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-wardwatch-tests")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["ALERT_SCHEDULER_ENABLED"] = "false"

from wardwatch.main import app
from wardwatch.core.auth import create_access_token
from wardwatch.core.database import Base, create_db_engine, get_db
from wardwatch.core.config import settings
from wardwatch.core.rate_limit import limiter
from wardwatch.models import (
    StaffMember,
    StaffRole,
    StaffStatus,
    Ward,
    Worker,
    WorkerAttendance,
    WorkerStatus,
)
from wardwatch.services.alert_engine import AlertEngine
from wardwatch.services.scheduler import SchedulerService

# Ensure authentication is enforced during tests to validate auth-related behavior
settings.AUTH_DISABLED = False

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_db_engine(SQLALCHEMY_DATABASE_URL)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

IST = ZoneInfo("Asia/Kolkata")

# Monday, 10:00 local: past the 9 AM cutoff
FIXED_NOW = datetime(2026, 10, 19, 10, 0, tzinfo=IST)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


# Override the database dependency
app.dependency_overrides[get_db] = override_get_db


def make_engine(now=FIXED_NOW, **kwargs):
    """Alert engine bound to the test database with a pinned clock."""
    kwargs.setdefault("max_workers", 1)
    return AlertEngine(TestingSessionLocal, tz=IST, clock=lambda: now, **kwargs)


def auth_headers_for(caller_id: int, role: str) -> dict:
    token = create_access_token({"sub": str(caller_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    """Create test client."""
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    with TestClient(app) as c:
        app.state.alert_scheduler = SchedulerService(make_engine())
        yield c
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Create database session for testing."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_headers():
    return auth_headers_for(1, "admin")


@pytest.fixture
def ward(db_session):
    ward = Ward(id=12, ward_number="12", ward_name="Gandhi Nagar")
    db_session.add(ward)
    db_session.commit()
    return ward


@pytest.fixture
def eo(db_session, ward):
    eo = StaffMember(
        id=7,
        full_name="Executive Officer",
        role=StaffRole.EO,
        status=StaffStatus.ACTIVE,
        ward_id=ward.id,
    )
    db_session.add(eo)
    db_session.commit()
    return eo


@pytest.fixture
def supervisor(db_session, eo, ward):
    supervisor = StaffMember(
        id=21,
        full_name="Suresh Supervisor",
        role=StaffRole.SUPERVISOR,
        status=StaffStatus.ACTIVE,
        eo_id=eo.id,
        ward_id=ward.id,
    )
    db_session.add(supervisor)
    db_session.commit()
    return supervisor


@pytest.fixture
def make_worker(db_session, eo, ward, supervisor):
    def _make_worker(name, status=WorkerStatus.ACTIVE.value, **kwargs):
        kwargs.setdefault("eo_id", eo.id)
        kwargs.setdefault("ward_id", ward.id)
        kwargs.setdefault("supervisor_id", supervisor.id)
        kwargs.setdefault("mobile", "9800000000")
        worker = Worker(full_name=name, status=status, **kwargs)
        db_session.add(worker)
        db_session.commit()
        return worker
    return _make_worker


@pytest.fixture
def mark_attendance(db_session):
    def _mark_attendance(worker, day, geo_status="INSIDE_WARD", supervisor_id=None):
        record = WorkerAttendance(
            worker_id=worker.id,
            supervisor_id=supervisor_id if supervisor_id is not None else worker.supervisor_id,
            ward_id=worker.ward_id,
            eo_id=worker.eo_id,
            attendance_date=day,
            geo_status=geo_status,
        )
        db_session.add(record)
        db_session.commit()
        return record
    return _mark_attendance


@pytest.fixture
def alert_engine_factory(db_session):
    return make_engine


@pytest.fixture
def headers_for():
    return auth_headers_for
