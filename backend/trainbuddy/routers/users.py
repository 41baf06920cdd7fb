"""Profile API routes for the signed-in user."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status

from trainbuddy.dependencies import get_store, require_session
from trainbuddy.schemas.user import FrequentRoute, UserProfile, UserUpdate
from trainbuddy.services import user_service
from trainbuddy.services.identity_service import SessionContext
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


def _writable(session: SessionContext) -> str:
    if session.degraded:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Your profile could not be saved earlier, so it cannot be edited yet.",
        )
    return session.identity.uid


@router.get("/me", response_model=UserProfile)
def get_my_profile(session: SessionContext = Depends(require_session)):
    return session.user


@router.patch("/me", response_model=UserProfile)
def update_my_profile(
    payload: UserUpdate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    """Update display name / phone (partial update)."""
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        return session.user
    return user_service.update_profile(store, _writable(session), updates)


@router.post("/me/routes", response_model=UserProfile, status_code=status.HTTP_201_CREATED)
def add_route(
    payload: FrequentRoute,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    return user_service.add_frequent_route(store, _writable(session), payload)


@router.delete("/me/routes/{train_number}", response_model=UserProfile)
def remove_route(
    train_number: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    return user_service.remove_frequent_route(store, _writable(session), train_number)


@router.get("/{user_id}", response_model=UserProfile)
def get_user(
    user_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    """Fetch another user's profile (e.g. a fellow group member)."""
    profile = user_service.get_profile(store, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return profile
