"""
Periodic deadline reminders and new-scholarship alerts.

Both jobs run on an APScheduler AsyncIOScheduler inside the API process and
open their own database session per run. A failure for one recipient is
logged and the rest of the batch still goes out.
"""
import logging
from datetime import date, datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from scholarhub.config import Settings, settings
from scholarhub.database import SessionLocal
from scholarhub.models.scholarship import SavedScholarship, Scholarship
from scholarhub.models.user import User
from scholarhub.services.email_service import EmailSender
from scholarhub.services.notification_service import NotificationDispatcher

logger = logging.getLogger("scholarhub.reminders")


def days_until(deadline: str, today: date) -> int:
    return (date.fromisoformat(deadline[:10]) - today).days


def find_deadline_reminders(db: Session, today: date, window_days: int = 7) -> list[tuple[User, Scholarship]]:
    """(user, scholarship) pairs for saved, active scholarships closing within the window."""
    last_day = today + timedelta(days=window_days)
    return (
        db.query(User, Scholarship)
        .join(SavedScholarship, SavedScholarship.user_id == User.id)
        .join(Scholarship, Scholarship.id == SavedScholarship.scholarship_id)
        .filter(
            Scholarship.is_active.is_(True),
            Scholarship.deadline.isnot(None),
            func.date(Scholarship.deadline) >= today.isoformat(),
            func.date(Scholarship.deadline) <= last_day.isoformat(),
        )
        .order_by(Scholarship.deadline, User.id)
        .all()
    )


def find_new_scholarship_matches(
    db: Session, now: datetime, lookback_days: int = 7,
) -> list[tuple[Scholarship, list[str]]]:
    """Recently added scholarships with the users who saved one in the same category."""
    since = (now - timedelta(days=lookback_days)).strftime("%Y-%m-%dT%H:%M:%SZ")
    recent = (
        db.query(Scholarship)
        .filter(Scholarship.is_active.is_(True), Scholarship.created_at >= since)
        .order_by(Scholarship.created_at)
        .all()
    )
    matches = []
    for scholarship in recent:
        query = (
            db.query(SavedScholarship.user_id)
            .join(Scholarship, Scholarship.id == SavedScholarship.scholarship_id)
            .distinct()
        )
        if scholarship.category is not None:
            query = query.filter(Scholarship.category == scholarship.category)
        user_ids = [row[0] for row in query.order_by(SavedScholarship.user_id).all()]
        matches.append((scholarship, user_ids))
    return matches


class ReminderScheduler:
    def __init__(
        self,
        notifier: NotificationDispatcher,
        email_sender: EmailSender,
        session_factory: sessionmaker = SessionLocal,
        config: Settings = settings,
    ):
        self.notifier = notifier
        self.email_sender = email_sender
        self.session_factory = session_factory
        self.config = config
        self._scheduler: AsyncIOScheduler | None = None

    async def run_deadline_reminders(self, db: Session, today: date | None = None) -> int:
        today = today or datetime.now(timezone.utc).date()
        sent = 0
        for user, scholarship in find_deadline_reminders(db, today, self.config.reminder_window_days):
            try:
                days_left = days_until(scholarship.deadline, today)
                notification = await self.notifier.send_deadline_reminder(
                    db, user.id, scholarship.id, scholarship.name, days_left,
                )
                if notification is not None:
                    sent += 1
                await self._email_reminder(user, scholarship, days_left)
            except Exception:
                logger.exception("Deadline reminder failed for user %s, scholarship %s", user.id, scholarship.id)
        logger.info("Sent %d deadline reminders", sent)
        return sent

    async def _email_reminder(self, user: User, scholarship: Scholarship, days_left: int):
        try:
            await run_in_threadpool(
                self.email_sender.send_deadline_reminder_email,
                user.email, user.full_name, scholarship.name, days_left,
            )
        except Exception:
            logger.exception("Reminder email to %s failed", user.email)

    async def run_new_scholarship_alerts(self, db: Session, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        sent = 0
        for scholarship, user_ids in find_new_scholarship_matches(db, now, self.config.new_scholarship_lookback_days):
            for user_id in user_ids:
                try:
                    notification = await self.notifier.send_new_scholarship_alert(
                        db, user_id, scholarship.id, scholarship.name,
                    )
                    if notification is not None:
                        sent += 1
                except Exception:
                    logger.exception("New scholarship alert failed for user %s", user_id)
        logger.info("Sent %d new scholarship alerts", sent)
        return sent

    async def _deadline_job(self):
        db = self.session_factory()
        try:
            await self.run_deadline_reminders(db)
        finally:
            db.close()

    async def _new_scholarship_job(self):
        db = self.session_factory()
        try:
            await self.run_new_scholarship_alerts(db)
        finally:
            db.close()

    def start(self):
        if self._scheduler is not None:
            return
        scheduler = AsyncIOScheduler(timezone=self.config.scheduler_timezone)
        scheduler.add_job(
            self._deadline_job, CronTrigger(hour=9, minute=0),
            id="deadline_reminders", replace_existing=True,
        )
        scheduler.add_job(
            self._new_scholarship_job, CronTrigger(day_of_week="mon", hour=10, minute=0),
            id="new_scholarship_alerts", replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Reminder scheduler started")

    def shutdown(self):
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Reminder scheduler stopped")
