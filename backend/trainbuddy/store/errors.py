"""Typed error taxonomy for the document store.

Callers match on these classes; only this module looks at driver-level
error details.
"""
from sqlalchemy.exc import DBAPIError

# SQLSTATE insufficient_privilege
_PG_INSUFFICIENT_PRIVILEGE = "42501"


class StoreError(Exception):
    """Base class for every failure raised by the document store."""

    code = "unknown"


class PermissionDeniedError(StoreError):
    code = "permission-denied"


class MissingIndexError(StoreError):
    """An ordered, filtered query has no composite index to serve it."""

    code = "failed-precondition"

    def __init__(self, collection: str, fields: list[str], order_by: str):
        self.collection = collection
        self.fields = fields
        self.order_by = order_by
        super().__init__(
            f"The query on '{collection}' requires an index on "
            f"({', '.join(fields + [order_by])}). Add it to STORE_INDEXES."
        )


class DocumentNotFoundError(StoreError):
    code = "not-found"

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No document {collection}/{doc_id}")


class ConflictError(StoreError):
    """A compare-and-swap write lost every attempt to a concurrent writer."""

    code = "aborted"


def translate(exc: DBAPIError) -> StoreError | DBAPIError:
    """Map a driver error onto the store taxonomy, or return it unchanged."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == _PG_INSUFFICIENT_PRIVILEGE:
        return PermissionDeniedError(str(orig))
    message = str(orig or exc).lower()
    if "readonly database" in message or "permission denied" in message:
        return PermissionDeniedError(str(orig or exc))
    return exc
