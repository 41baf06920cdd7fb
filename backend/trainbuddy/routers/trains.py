"""Train catalog API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from trainbuddy.dependencies import get_store
from trainbuddy.schemas.platform import PlatformLayout
from trainbuddy.schemas.train import Train
from trainbuddy.services import group_service, platform_service, train_service
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[Train])
def search_trains(q: str = Query("", description="Matches train number, name or route"), store: DocumentStore = Depends(get_store)):
    return train_service.search_trains(store, q)


@router.get("/{train_number}", response_model=Train)
def get_train(train_number: str, store: DocumentStore = Depends(get_store)):
    train = train_service.get_train_by_number(store, train_number)
    if not train:
        raise HTTPException(status_code=404, detail="Train not found")
    return train


@router.get("/{train_number}/platform", response_model=PlatformLayout)
def get_platform_layout(
    train_number: str,
    coach: Optional[str] = Query(None, description="Coach to highlight"),
    group_id: Optional[str] = Query(None, description="Mark coaches where this group's members sit"),
    store: DocumentStore = Depends(get_store),
):
    train = train_service.get_train_by_number(store, train_number)
    if not train:
        raise HTTPException(status_code=404, detail="Train not found")
    members = []
    if group_id:
        group = group_service.get_group(store, group_id)
        if not group:
            raise HTTPException(status_code=404, detail="Group not found")
        members = group.members
    return platform_service.platform_layout(train, coach, members)
