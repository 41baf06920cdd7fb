"""Journey reminders — fire a fixed offset before departure."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytz
from fastapi import HTTPException, status

from trainbuddy.config import settings
from trainbuddy.schemas.reminder import JourneyReminder, ReminderCreate
from trainbuddy.schemas.train import Train
from trainbuddy.services.rules import rewrite_permission_errors, validated_patch
from trainbuddy.store.document_store import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)

REMINDERS = "reminders"


def journey_datetime_utc(payload: ReminderCreate) -> datetime:
    """Interpret the wall-clock journey time in the rider's timezone."""
    tz_name = payload.timezone or settings.DEFAULT_TIMEZONE
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown timezone: {tz_name}")
    local = tz.localize(datetime.combine(payload.journey_date, payload.journey_time))
    return local.astimezone(pytz.utc)


def create_reminder(store: DocumentStore, user_id: str, train: Train, payload: ReminderCreate) -> JourneyReminder:
    journey_at = journey_datetime_utc(payload)
    remind_at = journey_at - timedelta(minutes=settings.REMINDER_OFFSET_MINUTES)
    with rewrite_permission_errors():
        reminder_id = store.add(REMINDERS, {
            "user_id": user_id,
            "train_number": train.train_number,
            "train_name": train.train_name,
            "route": train.route,
            "journey_date": journey_at,
            "reminder_time": remind_at,
            "coach_number": payload.coach_number,
            "seat_number": payload.seat_number,
            "is_active": True,
            "created_at": SERVER_TIMESTAMP,
        }, id_field="reminder_id")
        data = store.get(REMINDERS, reminder_id)
    logger.info("Created reminder %s for user %s on train %s at %s", reminder_id, user_id, train.train_number, remind_at)
    return JourneyReminder.model_validate(data)


def get_user_reminders(store: DocumentStore, user_id: str) -> list[JourneyReminder]:
    """Active reminders, soonest journey first."""
    with rewrite_permission_errors():
        docs = store.query(REMINDERS, filters={"user_id": user_id, "is_active": True})
    reminders = [JourneyReminder.model_validate(d) for d in docs]
    return sorted(reminders, key=lambda r: r.journey_date)


def _owned(store: DocumentStore, reminder_id: str, user_id: str) -> JourneyReminder:
    with rewrite_permission_errors():
        data = store.get(REMINDERS, reminder_id)
    if not data:
        raise HTTPException(status_code=404, detail="Reminder not found")
    reminder = JourneyReminder.model_validate(data)
    if reminder.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This reminder belongs to another user.")
    return reminder


def update_reminder(store: DocumentStore, reminder_id: str, user_id: str, updates: dict[str, Any]) -> JourneyReminder:
    _owned(store, reminder_id, user_id)
    with rewrite_permission_errors():
        data = store.mutate(
            REMINDERS, reminder_id, lambda current: validated_patch(JourneyReminder, current, updates)
        )
    if data is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    logger.info("Updated reminder %s", reminder_id)
    return JourneyReminder.model_validate(data)


def delete_reminder(store: DocumentStore, reminder_id: str, user_id: str) -> None:
    _owned(store, reminder_id, user_id)
    with rewrite_permission_errors():
        store.delete(REMINDERS, reminder_id)
    logger.info("Deleted reminder %s", reminder_id)


def notification_text(reminder: JourneyReminder, now: datetime) -> str:
    minutes = max(0, int((reminder.journey_date - now).total_seconds() // 60))
    return (
        f"Your train {reminder.train_name} ({reminder.train_number}) departs in {minutes} minutes! "
        f"Coach: {reminder.coach_number or '-'}, Seat: {reminder.seat_number or '-'}"
    )


def get_due_reminders(store: DocumentStore, user_id: str, now: Optional[datetime] = None) -> list[tuple[JourneyReminder, str]]:
    """Reminders whose fire time has passed but whose train has not left yet."""
    now = now or datetime.now(timezone.utc)
    return [
        (r, notification_text(r, now))
        for r in get_user_reminders(store, user_id)
        if r.reminder_time <= now < r.journey_date
    ]
