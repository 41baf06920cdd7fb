"""Group management API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status

from trainbuddy.dependencies import get_identity_provider, get_store, require_session
from trainbuddy.identity.provider import IdentityProvider
from trainbuddy.routers import streaming
from trainbuddy.schemas.group import Group, GroupCreate, GroupJoin, GroupMember, SeatUpdate
from trainbuddy.services import group_service, train_service
from trainbuddy.services.identity_service import SessionContext
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


def _member(session: SessionContext, coach_number: Optional[str], seat_number: Optional[str]) -> GroupMember:
    return GroupMember.seated(session.identity.uid, session.user.display_name, coach_number, seat_number)


@router.post("/", response_model=Group, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    """Create a group for a train journey. The creator is its first member."""
    train = train_service.get_train_by_number(store, payload.train_number)
    if not train:
        raise HTTPException(status_code=404, detail="Train not found")
    return group_service.new_group(
        store,
        payload.group_name,
        train,
        payload.journey_date,
        _member(session, payload.coach_number, payload.seat_number),
    )


@router.post("/join", response_model=Group)
def join_group(
    payload: GroupJoin,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    group = group_service.join_group(
        store,
        payload.group_code,
        _member(session, payload.coach_number, payload.seat_number),
    )
    if group is None:
        raise HTTPException(status_code=404, detail="No active group with this code")
    return group


@router.get("/", response_model=list[Group])
def list_my_groups(session: SessionContext = Depends(require_session), store: DocumentStore = Depends(get_store)):
    """Active groups the signed-in user belongs to."""
    return group_service.get_user_groups(store, session.identity.uid)


@router.get("/code/{group_code}", response_model=Group)
def get_group_by_code(
    group_code: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    group = group_service.get_group_by_code(store, group_code)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.get("/{group_id}", response_model=Group)
def get_group(
    group_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    group = group_service.get_group(store, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.put("/{group_id}/seat", response_model=Group)
def update_my_seat(
    group_id: str,
    payload: SeatUpdate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    group = group_service.update_member_seat(
        store, group_id, session.identity.uid, payload.coach_number, payload.seat_number
    )
    if group is None:
        raise HTTPException(status_code=404, detail="You are not a member of this group")
    return group


@router.delete("/{group_id}/members/me", status_code=status.HTTP_204_NO_CONTENT)
def leave_group(
    group_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    group_service.leave_group(store, group_id, session.identity.uid)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(
    group_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    """Delete a group and its chat history (creator only)."""
    if not group_service.get_group(store, group_id):
        raise HTTPException(status_code=404, detail="Group not found")
    group_service.delete_group(store, group_id, actor_user_id=session.identity.uid)


@router.websocket("/{group_id}/ws")
async def group_updates(
    websocket: WebSocket,
    group_id: str,
    token: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Push the group document (members, seats) every time it changes."""
    if await streaming.accept_with_token(websocket, provider, token) is None:
        return
    await streaming.stream(
        websocket,
        lambda push: group_service.subscribe_to_group(
            store,
            group_id,
            lambda group: push({"type": "group", "group": group.model_dump(mode="json")}),
            lambda exc: push({"type": "error", "detail": str(exc)}),
        ),
        lambda registration: registration.remove(),
    )
