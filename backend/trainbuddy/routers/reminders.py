"""Journey reminder API routes."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status

from trainbuddy.dependencies import get_store, require_session
from trainbuddy.schemas.reminder import DueReminder, JourneyReminder, ReminderCreate, ReminderUpdate
from trainbuddy.services import reminder_service, train_service
from trainbuddy.services.identity_service import SessionContext
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=JourneyReminder, status_code=status.HTTP_201_CREATED)
def create_reminder(
    payload: ReminderCreate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    """Remind the user a fixed time before departure."""
    train = train_service.get_train_by_number(store, payload.train_number)
    if not train:
        raise HTTPException(status_code=404, detail="Train not found")
    return reminder_service.create_reminder(store, session.identity.uid, train, payload)


@router.get("/", response_model=list[JourneyReminder])
def list_reminders(session: SessionContext = Depends(require_session), store: DocumentStore = Depends(get_store)):
    return reminder_service.get_user_reminders(store, session.identity.uid)


@router.get("/due", response_model=list[DueReminder])
def list_due_reminders(session: SessionContext = Depends(require_session), store: DocumentStore = Depends(get_store)):
    """Reminders that should be shown as a notification right now."""
    return [
        DueReminder(reminder=reminder, notification=text)
        for reminder, text in reminder_service.get_due_reminders(store, session.identity.uid)
    ]


@router.patch("/{reminder_id}", response_model=JourneyReminder)
def update_reminder(
    reminder_id: str,
    payload: ReminderUpdate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    return reminder_service.update_reminder(store, reminder_id, session.identity.uid, updates)


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(
    reminder_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    reminder_service.delete_reminder(store, reminder_id, session.identity.uid)
