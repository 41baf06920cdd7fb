"""Pydantic schemas for journey reminders."""
from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, Field


class ReminderCreate(BaseModel):
    train_number: str = Field(min_length=1)
    coach_number: str = ""
    seat_number: str = ""
    journey_date: date
    journey_time: time
    timezone: Optional[str] = None  # IANA tz; defaults to settings.DEFAULT_TIMEZONE


class ReminderUpdate(BaseModel):
    coach_number: Optional[str] = None
    seat_number: Optional[str] = None
    is_active: Optional[bool] = None


class JourneyReminder(BaseModel):
    reminder_id: str
    user_id: str
    train_number: str
    train_name: str = ""
    route: str = ""
    journey_date: datetime
    reminder_time: datetime
    coach_number: str = ""
    seat_number: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None


class DueReminder(BaseModel):
    reminder: JourneyReminder
    notification: str
