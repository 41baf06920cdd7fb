"""Group lifecycle — create, join by code, leave, delete, seat changes.

The member list is embedded in the group document and always written back
as a whole. Writes to it go through ``DocumentStore.mutate`` so two people
joining at the same moment cannot overwrite each other.
"""
import logging
import random
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from fastapi import HTTPException, status

from trainbuddy.schemas.group import Group, GroupMember
from trainbuddy.schemas.train import Train
from trainbuddy.services.rules import rewrite_permission_errors
from trainbuddy.store.document_store import SERVER_TIMESTAMP, DocumentStore
from trainbuddy.store.errors import ConflictError
from trainbuddy.store.listeners import ListenerRegistration

logger = logging.getLogger(__name__)

GROUPS = "groups"
MESSAGES = "messages"


def generate_group_code() -> str:
    """Six decimal digits, 100000-999999. Uniqueness is not checked."""
    return str(random.randint(100000, 999999))


def _mutate_members(
    store: DocumentStore,
    group_id: str,
    change: Callable[[list[dict[str, Any]]], Optional[list[dict[str, Any]]]],
) -> Optional[dict[str, Any]]:
    def apply(data: dict[str, Any]) -> Optional[dict[str, Any]]:
        members = change(list(data.get("members", [])))
        if members is None:
            return None
        data["members"] = members
        return data

    try:
        with rewrite_permission_errors():
            return store.mutate(GROUPS, group_id, apply)
    except ConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The member list kept changing underneath this update. Please retry.",
        ) from exc


def new_group(
    store: DocumentStore,
    group_name: str,
    train: Train,
    journey_date: date,
    creator: GroupMember,
) -> Group:
    """Persist a new active group with the creator as its only member."""
    group_code = generate_group_code()
    first_member = creator.model_copy(update={"joined_at": datetime.now(timezone.utc)})
    with rewrite_permission_errors():
        group_id = store.add(GROUPS, {
            "group_name": group_name,
            "group_code": group_code,
            "created_by": creator.user_id,
            "train_number": train.train_number,
            "route": train.route,
            "journey_date": journey_date,
            "members": [first_member.model_dump()],
            "created_at": SERVER_TIMESTAMP,
            "is_active": True,
        })
        data = store.update(GROUPS, group_id, {"group_id": group_id})
    logger.info("Created group '%s' (%s, code %s) by user %s", group_name, group_id, group_code, creator.user_id)
    return Group.model_validate(data)


def create_group(
    store: DocumentStore,
    group_name: str,
    train: Train,
    journey_date: date,
    creator: GroupMember,
) -> str:
    """Like ``new_group`` but return only the join code."""
    return new_group(store, group_name, train, journey_date, creator).group_code


def get_group(store: DocumentStore, group_id: str) -> Optional[Group]:
    with rewrite_permission_errors():
        data = store.get(GROUPS, group_id)
    return Group.model_validate(data) if data else None


def get_group_by_code(store: DocumentStore, group_code: str) -> Optional[Group]:
    """First group with this code, active or not."""
    with rewrite_permission_errors():
        matches = store.query(GROUPS, filters={"group_code": group_code})
    return Group.model_validate(matches[0]) if matches else None


def get_user_groups(store: DocumentStore, user_id: str) -> list[Group]:
    with rewrite_permission_errors():
        active = store.query(GROUPS, filters={"is_active": True})
    groups = [Group.model_validate(data) for data in active if "group_id" in data]
    return [g for g in groups if g.member(user_id)]


def join_group(store: DocumentStore, group_code: str, member: GroupMember) -> Optional[Group]:
    """Add ``member`` to the active group with this code.

    Returns None when no active group has the code. Joining again is a no-op
    that returns the group as it stands.
    """
    with rewrite_permission_errors():
        matches = store.query(GROUPS, filters={"group_code": group_code, "is_active": True})
    if not matches:
        return None
    group = Group.model_validate(matches[0])
    if group.member(member.user_id):
        return group

    joined = member.model_copy(update={"joined_at": datetime.now(timezone.utc)}).model_dump()

    def append(members):
        if any(m.get("user_id") == member.user_id for m in members):
            return None
        return members + [joined]

    data = _mutate_members(store, group.group_id, append)
    if data is None:
        return None
    logger.info("User %s joined group %s", member.user_id, group.group_id)
    return Group.model_validate(data)


def leave_group(store: DocumentStore, group_id: str, user_id: str) -> None:
    """Drop ``user_id`` from the member list; nothing happens if they are not in it."""
    removed = False

    def remove(members):
        nonlocal removed
        remaining = [m for m in members if m.get("user_id") != user_id]
        removed = len(remaining) != len(members)
        return remaining if removed else None

    _mutate_members(store, group_id, remove)
    if removed:
        logger.info("User %s left group %s", user_id, group_id)


def update_member_seat(
    store: DocumentStore,
    group_id: str,
    user_id: str,
    coach_number: str,
    seat_number: str,
) -> Optional[Group]:
    def reseat(members):
        if not any(m.get("user_id") == user_id for m in members):
            return None
        return [
            {**m, "coach_number": coach_number, "seat_number": seat_number, "joining_from_next_station": False}
            if m.get("user_id") == user_id else m
            for m in members
        ]

    data = _mutate_members(store, group_id, reseat)
    if data is None:
        return None
    logger.info("User %s moved to coach %s seat %s in group %s", user_id, coach_number, seat_number, group_id)
    return Group.model_validate(data)


def delete_group(store: DocumentStore, group_id: str, actor_user_id: Optional[str] = None) -> int:
    """Delete the group, then every chat message that references it.

    Two separate writes: a failure between them leaves orphaned messages,
    which a later call for the same id will sweep up. Returns the number of
    messages removed.
    """
    with rewrite_permission_errors():
        data = store.get(GROUPS, group_id)
        if data and actor_user_id is not None and data.get("created_by") != actor_user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the group creator may delete this group.",
            )
        store.delete(GROUPS, group_id)
        removed = store.delete_where(MESSAGES, {"group_id": group_id})
    logger.info("Deleted group %s and %d messages", group_id, removed)
    return removed


def subscribe_to_group(
    store: DocumentStore,
    group_id: str,
    on_update: Callable[[Group], None],
    on_error: Optional[Callable[[Exception], None]] = None,
) -> ListenerRegistration:
    """Live view of one group; nothing is delivered while it does not exist."""
    return store.listen_document(
        GROUPS,
        group_id,
        lambda data: on_update(Group.model_validate(data)),
        on_error,
    )
