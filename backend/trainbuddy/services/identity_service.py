"""Session context and profile bootstrap.

``SessionContext`` replaces a global "current user": it starts in
``loading``, settles on ``signed_in`` or ``signed_out`` when the identity
provider reports the token's state, and ``close()`` drops its provider
listener.
"""
import enum
import logging
from typing import Optional

from fastapi import HTTPException, status

from trainbuddy.identity.provider import AuthError, AuthErrorCode, AuthStateRegistration, Identity, IdentityProvider
from trainbuddy.schemas.user import UserProfile
from trainbuddy.services.rules import rewrite_permission_errors
from trainbuddy.store.document_store import SERVER_TIMESTAMP, DocumentStore
from trainbuddy.store.errors import PermissionDeniedError

logger = logging.getLogger(__name__)

USERS = "users"

AUTH_ERROR_MESSAGES = {
    AuthErrorCode.email_already_in_use: "An account with this email already exists. Try signing in instead.",
    AuthErrorCode.invalid_email: "Please enter a valid email address.",
    AuthErrorCode.weak_password: "Password should be at least 6 characters.",
    AuthErrorCode.user_not_found: "No account found with this email.",
    AuthErrorCode.wrong_password: "Incorrect password. Please try again.",
    AuthErrorCode.operation_not_allowed: (
        "This sign-in method is not enabled. Please contact support or use email/password sign-in."
    ),
    AuthErrorCode.invalid_token: "Your session has expired. Please sign in again.",
}

AUTH_ERROR_STATUS = {
    AuthErrorCode.email_already_in_use: status.HTTP_409_CONFLICT,
    AuthErrorCode.user_not_found: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.wrong_password: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.operation_not_allowed: status.HTTP_403_FORBIDDEN,
    AuthErrorCode.invalid_token: status.HTTP_401_UNAUTHORIZED,
}


def auth_error_to_http(exc: AuthError) -> HTTPException:
    """User-readable HTTP error for known codes; anything else is re-raised as is."""
    message = AUTH_ERROR_MESSAGES.get(exc.code)
    if message is None:
        raise exc
    return HTTPException(status_code=AUTH_ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST), detail=message)


def _profile_fields(identity: Identity, display_name: Optional[str] = None) -> dict:
    return {
        "user_id": identity.uid,
        "email": identity.email or "",
        "display_name": display_name or identity.display_name or "",
        "phone_number": identity.phone_number or "",
        "frequent_routes": [],
    }


def ensure_profile(
    store: DocumentStore,
    identity: Identity,
    display_name: Optional[str] = None,
) -> tuple[UserProfile, bool]:
    """Read the profile, creating it on first sign-in.

    Returns ``(profile, degraded)``. When the store refuses the create, the
    profile is built in memory from the provider fields and ``degraded`` is
    True; nothing retries the write later.
    """
    with rewrite_permission_errors():
        data = store.get(USERS, identity.uid)
    if data:
        return UserProfile.model_validate(data), False

    fields = _profile_fields(identity, display_name)
    try:
        store.set(USERS, identity.uid, {**fields, "created_at": SERVER_TIMESTAMP})
    except PermissionDeniedError as exc:
        logger.warning("Could not create profile for %s, continuing unsaved: %s", identity.uid, exc)
        return UserProfile.model_validate(fields), True

    logger.info("Created profile for %s", identity.uid)
    with rewrite_permission_errors():
        data = store.get(USERS, identity.uid)
    return UserProfile.model_validate(data or fields), False


class AuthState(str, enum.Enum):
    loading = "loading"
    signed_in = "signed_in"
    signed_out = "signed_out"


class SessionContext:
    def __init__(self, store: DocumentStore, provider: IdentityProvider, token: Optional[str]):
        self.token = token
        self.state = AuthState.loading
        self.identity: Optional[Identity] = None
        self.user: Optional[UserProfile] = None
        self.degraded = False
        self._store = store
        self._provider = provider
        self._registration: Optional[AuthStateRegistration] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.signed_in

    def open(self) -> "SessionContext":
        self._registration = self._provider.on_auth_state_changed(self.token, self._auth_state_changed)
        return self

    def close(self) -> None:
        if self._registration is not None:
            self._registration.remove()
            self._registration = None

    def _auth_state_changed(self, identity: Optional[Identity]) -> None:
        if identity is None:
            self.state = AuthState.signed_out
            self.identity = None
            self.user = None
            self.degraded = False
            return
        self.identity = identity
        self.user, self.degraded = ensure_profile(self._store, identity)
        self.state = AuthState.signed_in

    def reload(self) -> Optional[UserProfile]:
        """Re-read the stored profile after a change; degraded profiles stay as they are."""
        if self.identity is None or self.degraded:
            return self.user
        with rewrite_permission_errors():
            data = self._store.get(USERS, self.identity.uid)
        if data:
            self.user = UserProfile.model_validate(data)
        return self.user
