"""Platform drawing geometry — pure function of a train's coaches."""
from typing import Iterable, Optional

from trainbuddy.schemas.group import GroupMember
from trainbuddy.schemas.platform import CoachBox, MarkerPoint, PlatformLayout
from trainbuddy.schemas.train import Coach, CoachType, Train

PLATFORM_LENGTH = 800
PLATFORM_HEIGHT = 200
COACH_HEIGHT = 60
COACH_WIDTH = 70
LEFT_MARGIN = 50

SELECTED_COLOR = "#3b82f6"
MEMBER_COLOR = "#10b981"
TYPE_COLORS = {
    CoachType.ac: "#60a5fa",
    CoachType.first_class: "#60a5fa",
    CoachType.sleeper: "#34d399",
    CoachType.general: "#9ca3af",
}
DEFAULT_COLOR = "#9ca3af"

# (type, label, fraction of the furthest coach position)
MARKERS = [
    ("entrance", "Entrance", 0.0),
    ("stairs", "Stairs", 0.3),
    ("lift", "Lift", 0.5),
    ("foodStall", "Food", 0.7),
    ("exit", "Exit", 1.0),
]


def coach_color(coach: Coach, selected_coach: Optional[str], member_coaches: set[str]) -> str:
    if coach.coach_number == selected_coach:
        return SELECTED_COLOR
    if coach.coach_number in member_coaches:
        return MEMBER_COLOR
    return TYPE_COLORS.get(coach.coach_type, DEFAULT_COLOR)


def platform_layout(
    train: Train,
    selected_coach: Optional[str] = None,
    members: Iterable[GroupMember] = (),
) -> PlatformLayout:
    members = list(members)
    max_position = max((c.platform_position for c in train.coaches), default=0)
    scale = (PLATFORM_LENGTH - 100) / (max_position or 1)
    y = (PLATFORM_HEIGHT - COACH_HEIGHT) / 2
    member_coaches = {m.coach_number for m in members if m.coach_number}

    coaches = [
        CoachBox(
            coach_number=coach.coach_number,
            coach_type=coach.coach_type.value,
            x=LEFT_MARGIN + coach.platform_position * scale,
            y=y,
            width=COACH_WIDTH,
            height=COACH_HEIGHT,
            color=coach_color(coach, selected_coach, member_coaches),
            is_selected=coach.coach_number == selected_coach,
            members=[m.user_name for m in members if m.coach_number == coach.coach_number],
        )
        for coach in train.coaches
    ]
    markers = [
        MarkerPoint(
            type=kind,
            label=label,
            position=max_position * fraction,
            x=LEFT_MARGIN + max_position * fraction * scale,
        )
        for kind, label, fraction in MARKERS
    ]
    return PlatformLayout(
        train_number=train.train_number,
        width=PLATFORM_LENGTH,
        height=PLATFORM_HEIGHT,
        scale=scale,
        coaches=coaches,
        markers=markers,
    )
