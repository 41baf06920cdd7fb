"""User profile edits and saved frequent routes."""
import logging
from typing import Any, Optional

from fastapi import HTTPException, status

from trainbuddy.schemas.user import FrequentRoute, UserProfile
from trainbuddy.services.rules import rewrite_permission_errors, validated_patch
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"


def get_profile(store: DocumentStore, user_id: str) -> Optional[UserProfile]:
    with rewrite_permission_errors():
        data = store.get(USERS, user_id)
    return UserProfile.model_validate(data) if data else None


def update_profile(store: DocumentStore, user_id: str, updates: dict[str, Any]) -> UserProfile:
    """Partial update of the given fields only.

    The merged profile is validated before it is written, so a bad patch
    never reaches the store.
    """
    with rewrite_permission_errors():
        data = store.mutate(USERS, user_id, lambda current: validated_patch(UserProfile, current, updates))
    if data is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    logger.info("Updated profile %s (%s)", user_id, ", ".join(sorted(updates)))
    return UserProfile.model_validate(data)


def _mutate_routes(store: DocumentStore, user_id: str, change) -> UserProfile:
    def apply(data):
        routes = change(list(data.get("frequent_routes", [])))
        if routes is None:
            return None
        data["frequent_routes"] = routes
        return data

    with rewrite_permission_errors():
        data = store.mutate(USERS, user_id, apply)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
    return UserProfile.model_validate(data)


def add_frequent_route(store: DocumentStore, user_id: str, route: FrequentRoute) -> UserProfile:
    """Save a route for quick re-search; saving the same train twice is a no-op."""

    def append(routes):
        if any(r.get("train_number") == route.train_number for r in routes):
            return None
        return routes + [route.model_dump()]

    profile = _mutate_routes(store, user_id, append)
    logger.info("User %s saved route %s", user_id, route.train_number)
    return profile


def remove_frequent_route(store: DocumentStore, user_id: str, train_number: str) -> UserProfile:
    def remove(routes):
        remaining = [r for r in routes if r.get("train_number") != train_number]
        return remaining if len(remaining) != len(routes) else None

    return _mutate_routes(store, user_id, remove)
