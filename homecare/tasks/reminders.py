from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from homecare.core.config import settings
from homecare.db.models import Booking, BookingStatus
from homecare.db.session import SessionLocal
from homecare.tasks.celery_app import celery_app


def count_upcoming_bookings_for_reminder(db: Session, now: datetime | None = None) -> int:
    current_time = now or datetime.now(UTC)
    reminder_until = current_time + timedelta(minutes=settings.reminder_lookahead_minutes)

    candidates = db.scalars(
        select(Booking).where(
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.provider_id.is_not(None),
            Booking.scheduled_date >= current_time.date(),
            Booking.scheduled_date <= reminder_until.date(),
        )
    ).all()
    return sum(1 for booking in candidates if current_time <= booking.scheduled_start < reminder_until)


@celery_app.task(name="bookings.remind_upcoming")
def remind_upcoming_bookings_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        reminder_count = count_upcoming_bookings_for_reminder(db=db)
        return {"to_remind": reminder_count}
    finally:
        db.close()
