"""Pydantic schemas for the train catalog."""
import enum
from pydantic import BaseModel, Field


class CoachType(str, enum.Enum):
    sleeper = "sleeper"
    ac = "ac"
    general = "general"
    first_class = "firstClass"


class Coach(BaseModel):
    coach_type: CoachType
    coach_number: str
    total_seats: int = Field(ge=0)
    platform_position: float = Field(ge=0)  # metres from platform start


class Train(BaseModel):
    train_number: str
    train_name: str
    route: str
    coaches: list[Coach] = []

    def coach(self, coach_number: str):
        return next((c for c in self.coaches if c.coach_number == coach_number), None)
