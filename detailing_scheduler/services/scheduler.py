"""
APScheduler Service
Dispatches reservation reminders and follow-up (feedback) requests.
The jobs only flip the reminder/follow-up flags; scheduling fields are
never touched here.
"""
import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from detailing_scheduler.clock import SystemClock
from detailing_scheduler.config import settings
from detailing_scheduler.database import SessionLocal
from detailing_scheduler.models import Reservation, ReservationStatus
from detailing_scheduler.services.sms_service import get_twilio_service

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service to manage background scheduler tasks"""

    def __init__(self, session_factory=None, clock=None, sms=None):
        self.session_factory = session_factory or SessionLocal
        self.clock = clock or SystemClock()
        self.sms = sms or get_twilio_service()
        self.scheduler = BackgroundScheduler()
        self._setup_jobs()

    def _setup_jobs(self):
        """Setup all background jobs"""
        # Check for reminders every 5 minutes
        self.scheduler.add_job(
            self.send_reservation_reminders,
            IntervalTrigger(minutes=5),
            id="reservation_reminders",
            name="Send reservation reminders",
            replace_existing=True,
        )

        # Check for follow-ups every hour
        self.scheduler.add_job(
            self.send_followup_requests,
            IntervalTrigger(hours=1),
            id="followup_requests",
            name="Send follow-up requests",
            replace_existing=True,
        )

    def send_reservation_reminders(self) -> int:
        """
        Send a reminder for open reservations starting within the lead window.

        Returns:
            Number of reminders sent
        """
        now = self.clock.now()
        horizon = now + timedelta(hours=settings.reminder_lead_hours)
        sent = 0

        db = self.session_factory()
        try:
            candidates = (
                db.query(Reservation)
                .filter(
                    Reservation.date >= now.date(),
                    Reservation.date <= horizon.date(),
                    Reservation.status.in_(list(ReservationStatus.MUTABLE)),
                    Reservation.reminder_sent.is_(False),
                )
                .all()
            )

            for reservation in candidates:
                starts_at = datetime.combine(reservation.date, reservation.start_time)
                if not now <= starts_at <= horizon:
                    continue
                try:
                    if reservation.customer_phone:
                        self.sms.send_reminder_sms(
                            reservation.customer_phone,
                            starts_at.strftime("%B %d at %I:%M %p"),
                        )
                    reservation.reminder_sent = True
                    db.commit()
                    sent += 1
                    logger.info("Reminder sent for reservation %s", reservation.id)
                except Exception:
                    db.rollback()
                    logger.exception("Error sending reminder for reservation %s", reservation.id)
        finally:
            db.close()
        return sent

    def send_followup_requests(self) -> int:
        """
        Send a feedback request for completed reservations not yet followed up.

        Returns:
            Number of follow-ups sent
        """
        sent = 0
        db = self.session_factory()
        try:
            candidates = (
                db.query(Reservation)
                .filter(
                    Reservation.status == ReservationStatus.COMPLETED,
                    Reservation.followup_sent.is_(False),
                )
                .all()
            )

            for reservation in candidates:
                try:
                    if reservation.customer_phone:
                        self.sms.send_followup_sms(reservation.customer_phone)
                    reservation.followup_sent = True
                    db.commit()
                    sent += 1
                    logger.info("Follow-up sent for reservation %s", reservation.id)
                except Exception:
                    db.rollback()
                    logger.exception("Error sending follow-up for reservation %s", reservation.id)
        finally:
            db.close()
        return sent

    def start(self):
        """Start the scheduler"""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")


# Global scheduler instance
_scheduler_service = None


def get_scheduler() -> SchedulerService:
    """Get or create scheduler instance"""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service


def start_scheduler():
    """Start the background scheduler"""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler():
    """Stop the background scheduler"""
    if _scheduler_service is not None:
        _scheduler_service.stop()
