"""Pydantic schemas for user profiles."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class FrequentRoute(BaseModel):
    train_number: str = Field(min_length=1)
    train_name: str = ""
    route: str = ""


class UserProfile(BaseModel):
    user_id: str
    email: str = ""
    display_name: str = ""
    phone_number: str = ""
    frequent_routes: list[FrequentRoute] = []
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=32)


class SessionOut(BaseModel):
    user: UserProfile
    degraded: bool = False
