"""FastAPI dependencies — store, identity provider and per-request session."""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from trainbuddy.database import get_db
from trainbuddy.identity.provider import IdentityProvider
from trainbuddy.services.identity_service import SessionContext
from trainbuddy.store.document_store import DocumentStore

bearer = HTTPBearer(auto_error=False)


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_identity_provider(db: Session = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db)


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    store: DocumentStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Open a session context for the bearer token and close it after the request."""
    session = SessionContext(store, provider, credentials.credentials if credentials else None)
    session.open()
    try:
        yield session
    finally:
        session.close()


def require_session(session: SessionContext = Depends(get_session)) -> SessionContext:
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
