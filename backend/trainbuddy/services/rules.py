"""Write guards shared by the services: permission rewrites and patch validation."""
from contextlib import contextmanager
from typing import Any

from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError

from trainbuddy.store.errors import PermissionDeniedError

PERMISSION_DENIED_MESSAGE = (
    "Permission denied: database access rules may not be deployed. "
    "Grant the application role read/write access to the documents table."
)


@contextmanager
def rewrite_permission_errors():
    """Re-raise ``PermissionDeniedError`` as a 403 carrying the fix-it message."""
    try:
        yield
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PERMISSION_DENIED_MESSAGE) from exc


def validated_patch(model: type[BaseModel], data: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Merge ``updates`` into a stored document, refusing results ``model`` would reject."""
    merged = {**data, **updates}
    try:
        model.model_validate(merged)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc
    return merged
