"""Group chat API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status

from trainbuddy.dependencies import get_identity_provider, get_store, require_session
from trainbuddy.identity.provider import IdentityProvider
from trainbuddy.routers import streaming
from trainbuddy.schemas.message import ChatMessage, MessageCreate
from trainbuddy.services import chat_service, group_service
from trainbuddy.services.identity_service import SessionContext
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{group_id}/messages", response_model=list[ChatMessage])
def list_messages(
    group_id: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    """Chat history, oldest first."""
    return chat_service.fetch_messages(store, group_id)


@router.post("/{group_id}/messages", response_model=ChatMessage, status_code=status.HTTP_201_CREATED)
def send_message(
    group_id: str,
    payload: MessageCreate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
):
    if not group_service.get_group(store, group_id):
        raise HTTPException(status_code=404, detail="Group not found")
    message_id = chat_service.send_message(
        store, group_id, session.identity.uid, session.user.display_name, payload.message
    )
    return chat_service.get_message(store, message_id)


@router.websocket("/{group_id}/messages/ws")
async def message_updates(
    websocket: WebSocket,
    group_id: str,
    token: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Push the full ordered message list every time the chat changes."""
    if await streaming.accept_with_token(websocket, provider, token) is None:
        return
    await streaming.stream(
        websocket,
        lambda push: chat_service.subscribe_to_messages(
            store,
            group_id,
            lambda messages: push({
                "type": "messages",
                "messages": [m.model_dump(mode="json") for m in messages],
            }),
            lambda exc: push({"type": "error", "detail": str(exc)}),
        ),
        lambda subscription: subscription.cancel(),
    )
