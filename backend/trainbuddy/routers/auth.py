"""Sign-up, sign-in, sign-out and federated sign-in routes."""
import logging
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from trainbuddy.dependencies import get_identity_provider, get_session, get_store, require_session
from trainbuddy.identity.provider import AuthError, IdentityProvider
from trainbuddy.schemas.auth import AuthErrorOut, AuthResponse, FederatedAssertion, SignInRequest, SignUpRequest
from trainbuddy.schemas.user import SessionOut
from trainbuddy.services import identity_service
from trainbuddy.services.identity_service import SessionContext
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)
router = APIRouter()

AUTH_ERROR_COOKIE = "auth_error"


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: SignUpRequest,
    store: DocumentStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Register with email/password and create the profile."""
    try:
        result = provider.sign_up(payload.email, payload.password, payload.display_name)
    except AuthError as exc:
        raise identity_service.auth_error_to_http(exc) from exc
    user, degraded = identity_service.ensure_profile(store, result.identity, payload.display_name)
    return AuthResponse(token=result.token, user=user, degraded=degraded)


@router.post("/signin", response_model=AuthResponse)
def sign_in(
    payload: SignInRequest,
    store: DocumentStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    try:
        result = provider.sign_in(payload.email, payload.password)
    except AuthError as exc:
        raise identity_service.auth_error_to_http(exc) from exc
    user, degraded = identity_service.ensure_profile(store, result.identity)
    return AuthResponse(token=result.token, user=user, degraded=degraded)


@router.post("/federated/{provider_name}", response_model=AuthResponse)
def sign_in_federated(
    provider_name: str,
    payload: FederatedAssertion,
    store: DocumentStore = Depends(get_store),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Complete a federated redirect sign-in.

    A failure is also left in a short-lived cookie so the sign-in page can
    show it after the redirect back.
    """
    try:
        result = provider.sign_in_federated(
            provider_name,
            payload.subject,
            email=payload.email,
            display_name=payload.display_name,
            phone_number=payload.phone_number,
        )
    except AuthError as exc:
        logger.warning("Federated sign-in via %s failed: %s", provider_name, exc.code.value)
        error = identity_service.auth_error_to_http(exc)
        response = JSONResponse(status_code=error.status_code, content={"detail": error.detail})
        response.set_cookie(AUTH_ERROR_COOKIE, error.detail, max_age=300, httponly=True, samesite="lax")
        return response
    user, degraded = identity_service.ensure_profile(store, result.identity, result.identity.display_name or "User")
    return AuthResponse(token=result.token, user=user, degraded=degraded)


@router.get("/error", response_model=AuthErrorOut)
def pop_auth_error(request: Request, response: Response):
    """Return and clear the error left by a failed federated sign-in."""
    error = request.cookies.get(AUTH_ERROR_COOKIE)
    if error is not None:
        response.delete_cookie(AUTH_ERROR_COOKIE)
    return AuthErrorOut(error=error)


@router.get("/me", response_model=SessionOut)
def me(session: SessionContext = Depends(require_session)):
    return SessionOut(user=session.user, degraded=session.degraded)


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
def sign_out(
    session: SessionContext = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    if session.token:
        provider.sign_out(session.token)
