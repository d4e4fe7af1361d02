"""
Concurrency tests against a file-backed SQLite database, one session per thread
"""
import sqlite3
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from conftest import CUSTOMER_ID, NOW, TUESDAY, seed_business
from detailing_scheduler.clock import FixedClock
from detailing_scheduler.database import build_engine, init_db
from detailing_scheduler.errors import BundleSoldOutError, ConflictError, SlotConflictError
from detailing_scheduler.models import Bundle, Reservation, ReservationStatus
from detailing_scheduler.services.bundles import BundleService
from detailing_scheduler.services.conflicts import overlaps
from detailing_scheduler.services.notifications import RecordingPublisher
from detailing_scheduler.services.reservations import ReservationService


@pytest.fixture
def file_sessions(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _race(session_factory, attempts):
    """Run each attempt(session) in its own thread, released together"""
    barrier = threading.Barrier(len(attempts))
    results = [None] * len(attempts)

    def worker(index, attempt):
        session = session_factory()
        try:
            barrier.wait()
            results[index] = attempt(session)
        except Exception as exc:
            results[index] = exc
        finally:
            session.close()

    threads = [
        threading.Thread(target=worker, args=(i, attempt)) for i, attempt in enumerate(attempts)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


def _reservation_attempt(start, end, staff_id="staff-1", business_id=None):
    def attempt(session):
        service = ReservationService(
            session, clock=FixedClock(NOW), notifier=RecordingPublisher()
        )
        return service.create_reservation(
            customer_id=CUSTOMER_ID,
            date=TUESDAY,
            start_time=start,
            end_time=end,
            service_type="Exterior Wash",
            staff_id=staff_id,
            business_id=business_id,
        ).id

    return attempt


def _bundle_attempt(bundle_id, start):
    def attempt(session):
        service = BundleService(session, clock=FixedClock(NOW), notifier=RecordingPublisher())
        return service.book_bundle(bundle_id, CUSTOMER_ID, TUESDAY, start)["reservation_id"]

    return attempt


@pytest.mark.slow
class TestConcurrentBooking:
    """Test that concurrent writers never double-book"""

    def test_same_slot_is_booked_once(self, file_sessions):
        results = _race(file_sessions, [_reservation_attempt("10:00", "11:00") for _ in range(6)])

        booked = [r for r in results if isinstance(r, int)]
        failures = [r for r in results if not isinstance(r, int)]
        assert len(booked) == 1
        assert all(isinstance(f, SlotConflictError) for f in failures)

    def test_same_business_slot_is_booked_once_without_staff(self, file_sessions):
        session = file_sessions()
        business_id = seed_business(session)["business"].id
        session.close()

        results = _race(
            file_sessions,
            [
                _reservation_attempt("10:00", "11:00", staff_id=None, business_id=business_id)
                for _ in range(6)
            ],
        )

        booked = [r for r in results if isinstance(r, int)]
        failures = [r for r in results if not isinstance(r, int)]
        assert len(booked) == 1
        assert len(failures) == 5
        assert all(isinstance(f, SlotConflictError) for f in failures)

        session = file_sessions()
        try:
            active = (
                session.query(Reservation)
                .filter(
                    Reservation.business_id == business_id,
                    Reservation.status != ReservationStatus.CANCELLED,
                )
                .count()
            )
        finally:
            session.close()
        assert active == 1

    def test_overlapping_attempts_never_overlap(self, file_sessions):
        starts = ["09:00", "09:15", "09:30", "09:45", "10:00", "10:15", "10:30", "10:45"]
        attempts = [
            _reservation_attempt(start, f"{int(start[:2]) + 1:02d}:{start[3:]}") for start in starts
        ]
        results = _race(file_sessions, attempts)

        assert all(isinstance(r, (int, ConflictError)) for r in results)
        session = file_sessions()
        try:
            active = (
                session.query(Reservation)
                .filter(Reservation.status != ReservationStatus.CANCELLED)
                .all()
            )
        finally:
            session.close()
        assert len(active) >= 1
        for i, a in enumerate(active):
            for b in active[i + 1:]:
                assert not overlaps(a.start_time, a.end_time, b.start_time, b.end_time)

    def test_last_bundle_redemption(self, file_sessions):
        """Two concurrent bookings for a bundle with one redemption left"""
        session = file_sessions()
        bundle_id = seed_business(session, max_redemptions=1)["bundle"].id
        session.close()

        results = _race(
            file_sessions, [_bundle_attempt(bundle_id, "09:00"), _bundle_attempt(bundle_id, "12:00")]
        )

        booked = [r for r in results if isinstance(r, int)]
        failures = [r for r in results if not isinstance(r, int)]
        assert len(booked) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], BundleSoldOutError)
        assert isinstance(failures[0], ConflictError)

        session = file_sessions()
        try:
            assert session.get(Bundle, bundle_id).current_redemptions == 1
        finally:
            session.close()

    def test_redemption_cap_under_load(self, file_sessions):
        session = file_sessions()
        bundle_id = seed_business(session, max_redemptions=2)["bundle"].id
        session.close()

        # Three distinct windows, each requested twice; the cap admits two
        starts = ["09:00", "11:30", "14:30", "09:00", "11:30", "14:30"]
        results = _race(file_sessions, [_bundle_attempt(bundle_id, s) for s in starts])

        booked = [r for r in results if isinstance(r, int)]
        assert len(booked) == 2
        assert all(isinstance(r, ConflictError) for r in results if not isinstance(r, int))

        session = file_sessions()
        try:
            assert session.get(Bundle, bundle_id).current_redemptions == 2
        finally:
            session.close()


@pytest.mark.slow
class TestReadersDoNotBlockWriters:
    """Test that an open read transaction leaves the write lock free"""

    def test_slot_listing_leaves_write_lock_free(self, file_sessions, tmp_path):
        reader = file_sessions()
        try:
            business_id = seed_business(reader)["business"].id
            service = ReservationService(reader, clock=FixedClock(NOW), notifier=RecordingPublisher())
            assert len(service.get_available_slots(business_id, TUESDAY, 60)) == 15
            assert reader.in_transaction()

            writer = sqlite3.connect(str(tmp_path / "bookings.db"), timeout=0.2, isolation_level=None)
            try:
                writer.execute("BEGIN IMMEDIATE")
                writer.execute(
                    "UPDATE businesses SET phone = '+15551111111' WHERE id = ?", (business_id,)
                )
                writer.execute("COMMIT")
            finally:
                writer.close()
        finally:
            reader.close()

    def test_booking_after_a_read_in_the_same_session(self, file_sessions):
        session = file_sessions()
        try:
            business_id = seed_business(session)["business"].id
            service = ReservationService(session, clock=FixedClock(NOW), notifier=RecordingPublisher())
            service.get_available_slots(business_id, TUESDAY, 60)

            reservation_id = service.create_reservation(
                customer_id=CUSTOMER_ID,
                date=TUESDAY,
                start_time="10:00",
                end_time="11:00",
                service_type="Exterior Wash",
                business_id=business_id,
            ).id
            assert len(service.get_available_slots(business_id, TUESDAY, 60)) == 12
        finally:
            session.close()

        other = file_sessions()
        try:
            assert other.get(Reservation, reservation_id) is not None
        finally:
            other.close()
