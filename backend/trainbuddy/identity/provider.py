"""Identity provider — email/password and federated sign-in, opaque session tokens.

The rest of the application only sees ``Identity`` values, ``AuthError``
codes and auth-state callbacks; credential storage stays in here.
"""
import enum
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pwdlib import PasswordHash
from sqlalchemy.orm import Session

from trainbuddy.config import settings
from trainbuddy.models.credential import AuthToken, Credential

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthErrorCode(str, enum.Enum):
    email_already_in_use = "auth/email-already-in-use"
    invalid_email = "auth/invalid-email"
    weak_password = "auth/weak-password"
    user_not_found = "auth/user-not-found"
    wrong_password = "auth/wrong-password"
    operation_not_allowed = "auth/operation-not-allowed"
    invalid_token = "auth/invalid-token"
    internal_error = "auth/internal-error"


class AuthError(Exception):
    def __init__(self, code: AuthErrorCode, message: str = ""):
        self.code = code
        super().__init__(message or code.value)


@dataclass(frozen=True)
class Identity:
    """What the provider knows about a signed-in user."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    provider: str = "password"


@dataclass(frozen=True)
class SignInResult:
    identity: Identity
    token: str


password_hasher = PasswordHash.recommended()


AuthStateCallback = Callable[[Optional[Identity]], None]


class AuthStateRegistration:
    def __init__(self, hub: "AuthStateHub", token: Optional[str], callback: AuthStateCallback):
        self._hub = hub
        self._token = token
        self._callback = callback

    def remove(self) -> None:
        self._hub.discard(self._token, self._callback)


class AuthStateHub:
    """Callbacks waiting for a token to change state (e.g. be signed out)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks: dict[Optional[str], list[AuthStateCallback]] = {}

    def add(self, token: Optional[str], callback: AuthStateCallback) -> AuthStateRegistration:
        with self._lock:
            self._callbacks.setdefault(token, []).append(callback)
        return AuthStateRegistration(self, token, callback)

    def discard(self, token: Optional[str], callback: AuthStateCallback) -> None:
        with self._lock:
            callbacks = self._callbacks.get(token, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._callbacks.pop(token, None)

    def notify(self, token: str, identity: Optional[Identity]) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(token, []))
        for callback in callbacks:
            callback(identity)

    def count(self, token: Optional[str]) -> int:
        with self._lock:
            return len(self._callbacks.get(token, []))


auth_state_hub = AuthStateHub()


def _identity(credential: Credential) -> Identity:
    return Identity(
        uid=credential.uid,
        email=credential.email,
        display_name=credential.display_name,
        phone_number=credential.phone_number,
        provider=credential.provider,
    )


class IdentityProvider:
    def __init__(self, db: Session, hub: AuthStateHub = auth_state_hub):
        self.db = db
        self._hub = hub

    def _issue_token(self, credential: Credential) -> str:
        token = secrets.token_urlsafe(32)
        self.db.add(AuthToken(
            token=token,
            uid=credential.uid,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.TOKEN_TTL_HOURS),
        ))
        self.db.commit()
        return token

    def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> SignInResult:
        email = email.strip().lower()
        if "@" not in email:
            raise AuthError(AuthErrorCode.invalid_email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(AuthErrorCode.weak_password)
        if self.db.query(Credential).filter(Credential.email == email).first():
            raise AuthError(AuthErrorCode.email_already_in_use)

        credential = Credential(
            email=email,
            password_hash=password_hasher.hash(password),
            display_name=display_name,
            provider="password",
        )
        self.db.add(credential)
        self.db.flush()
        token = self._issue_token(credential)
        logger.info("Registered identity %s (%s)", credential.uid, email)
        return SignInResult(identity=_identity(credential), token=token)

    def sign_in(self, email: str, password: str) -> SignInResult:
        email = email.strip().lower()
        credential = (
            self.db.query(Credential)
            .filter(Credential.email == email, Credential.provider == "password")
            .first()
        )
        if not credential:
            raise AuthError(AuthErrorCode.user_not_found)
        if not password_hasher.verify(password, credential.password_hash):
            raise AuthError(AuthErrorCode.wrong_password)
        token = self._issue_token(credential)
        logger.info("Signed in identity %s", credential.uid)
        return SignInResult(identity=_identity(credential), token=token)

    def sign_in_federated(
        self,
        provider: str,
        subject: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> SignInResult:
        """Accept an assertion already verified by the federated provider."""
        if provider not in settings.federated_providers:
            raise AuthError(AuthErrorCode.operation_not_allowed, f"Sign-in with '{provider}' is not enabled")
        credential = (
            self.db.query(Credential)
            .filter(Credential.provider == provider, Credential.provider_subject == subject)
            .first()
        )
        if not credential:
            email = email.strip().lower() if email else None
            # Accounts are never linked by email alone.
            if email and self.db.query(Credential).filter(Credential.email == email).first():
                raise AuthError(
                    AuthErrorCode.email_already_in_use,
                    f"{email} already belongs to another sign-in method",
                )
            credential = Credential(
                email=email,
                display_name=display_name,
                phone_number=phone_number,
                provider=provider,
                provider_subject=subject,
            )
            self.db.add(credential)
            self.db.flush()
            logger.info("Linked %s identity %s to %s", provider, subject, credential.uid)
        token = self._issue_token(credential)
        return SignInResult(identity=_identity(credential), token=token)

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        """Return the identity behind a live token, or None."""
        if not token:
            return None
        row = self.db.query(AuthToken).filter(AuthToken.token == token).first()
        if not row:
            return None
        expires_at = row.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            return None
        return _identity(row.credential)

    def sign_out(self, token: str) -> None:
        row = self.db.query(AuthToken).filter(AuthToken.token == token).first()
        if row:
            self.db.delete(row)
            self.db.commit()
            logger.info("Signed out identity %s", row.uid)
        self._hub.notify(token, None)

    def on_auth_state_changed(self, token: Optional[str], callback: AuthStateCallback) -> AuthStateRegistration:
        """Call ``callback`` now with the current identity and again on sign-out."""
        registration = self._hub.add(token, callback)
        callback(self.resolve(token))
        return registration
