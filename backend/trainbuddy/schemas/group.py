"""Pydantic schemas for travel groups."""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class GroupMember(BaseModel):
    user_id: str
    user_name: str
    coach_number: Optional[str] = None
    seat_number: Optional[str] = None
    joining_from_next_station: bool = False
    joined_at: Optional[datetime] = None

    @classmethod
    def seated(cls, user_id: str, user_name: str, coach_number: Optional[str], seat_number: Optional[str]):
        """Build a member; no coach or seat means they board at the next station."""
        coach_number = coach_number or None
        seat_number = seat_number or None
        return cls(
            user_id=user_id,
            user_name=user_name,
            coach_number=coach_number,
            seat_number=seat_number,
            joining_from_next_station=not (coach_number and seat_number),
        )


class Group(BaseModel):
    group_id: str
    group_name: str
    group_code: str
    created_by: str
    train_number: str
    route: str = ""
    journey_date: date
    created_at: Optional[datetime] = None
    is_active: bool = True
    members: list[GroupMember] = []

    def member(self, user_id: str) -> Optional[GroupMember]:
        return next((m for m in self.members if m.user_id == user_id), None)


class GroupCreate(BaseModel):
    group_name: str = Field(min_length=1, max_length=150)
    train_number: str = Field(min_length=1)
    journey_date: date
    coach_number: Optional[str] = None
    seat_number: Optional[str] = None


class GroupJoin(BaseModel):
    group_code: str = Field(pattern=r"^\d{6}$")
    coach_number: Optional[str] = None
    seat_number: Optional[str] = None


class SeatUpdate(BaseModel):
    coach_number: str = Field(min_length=1)
    seat_number: str = Field(min_length=1)
