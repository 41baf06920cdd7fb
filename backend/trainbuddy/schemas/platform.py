"""Pydantic schemas for the platform layout drawing."""
from pydantic import BaseModel


class CoachBox(BaseModel):
    coach_number: str
    coach_type: str
    x: float
    y: float
    width: float
    height: float
    color: str
    is_selected: bool = False
    members: list[str] = []


class MarkerPoint(BaseModel):
    type: str
    label: str
    position: float
    x: float


class PlatformLayout(BaseModel):
    train_number: str
    width: int
    height: int
    scale: float
    coaches: list[CoachBox]
    markers: list[MarkerPoint]
