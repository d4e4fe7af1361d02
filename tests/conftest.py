"""
Pytest configuration and fixtures
"""
import os

# Keep the test run off the real database and the background jobs
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

from datetime import date, datetime, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from detailing_scheduler.clock import FixedClock
from detailing_scheduler.database import build_engine, get_db, init_db
from detailing_scheduler.models import (
    DAYS_OF_WEEK,
    Bundle,
    Business,
    BusinessAvailability,
    Service,
)
from detailing_scheduler.services.bundles import BundleService
from detailing_scheduler.services.notifications import RecordingPublisher
from detailing_scheduler.services.reservations import ReservationService

# Monday morning; every test books relative to this instant
NOW = datetime(2030, 6, 3, 8, 0)
MONDAY = date(2030, 6, 3)
TUESDAY = date(2030, 6, 4)
WEDNESDAY = date(2030, 6, 5)
SUNDAY = date(2030, 6, 9)

OWNER_ID = "owner-1"
CUSTOMER_ID = "customer-1"


def seed_business(session, max_redemptions=2):
    """Business open Mon-Sat 09:00-17:00 with three services and a bundle"""
    business = Business(name="Shine Detailing", owner_id=OWNER_ID, phone="+15550000000")
    session.add(business)
    session.flush()

    for day in DAYS_OF_WEEK:
        is_open = day != "sunday"
        session.add(
            BusinessAvailability(
                business_id=business.id,
                day_of_week=day,
                is_open=is_open,
                open_time=time(9, 0) if is_open else None,
                close_time=time(17, 0) if is_open else None,
            )
        )

    wash = Service(business_id=business.id, name="Exterior Wash", duration_minutes=60, price=50.0)
    interior = Service(
        business_id=business.id, name="Interior Detail", duration_minutes=90, price=120.0
    )
    wax = Service(business_id=business.id, name="Wax", duration_minutes=30, price=40.0)
    session.add_all([wash, interior, wax])
    session.flush()

    bundle = Bundle(
        business_id=business.id,
        name="Full Detail",
        service_ids=[wash.id, interior.id],
        total_duration=150,
        total_price=150.0,
        is_active=True,
        max_redemptions=max_redemptions,
        current_redemptions=0,
    )
    session.add(bundle)
    session.commit()
    return {
        "business": business,
        "services": [wash, interior, wax],
        "bundle": bundle,
    }


@pytest.fixture
def test_engine():
    """Create test database engine"""
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_db_session(test_engine):
    """Create test database session"""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def sample_data(test_db_session):
    return seed_business(test_db_session)


@pytest.fixture
def sample_business(sample_data):
    return sample_data["business"]


@pytest.fixture
def sample_services(sample_data):
    return sample_data["services"]


@pytest.fixture
def sample_bundle(sample_data):
    return sample_data["bundle"]


@pytest.fixture
def reservation_service(test_db_session, clock, publisher):
    return ReservationService(test_db_session, clock=clock, notifier=publisher)


@pytest.fixture
def bundle_service(test_db_session, clock, publisher):
    return BundleService(test_db_session, clock=clock, notifier=publisher)


@pytest.fixture
def book(reservation_service):
    """Factory for single-service reservations with sensible defaults"""

    def _book(start="10:00", end="11:00", day=TUESDAY, **kwargs):
        kwargs.setdefault("customer_id", CUSTOMER_ID)
        kwargs.setdefault("service_type", "Exterior Wash")
        return reservation_service.create_reservation(
            date=day, start_time=start, end_time=end, **kwargs
        )

    return _book


@pytest.fixture
def client(test_db_session, clock, publisher):
    """Create test client wired to the test session, clock and publisher"""
    from detailing_scheduler.api.routes import get_clock, get_notifier
    from detailing_scheduler.main import app

    def override_get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()


# Test markers
def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
