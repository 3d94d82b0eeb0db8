"""
Authentication endpoints: register, login, logout, dashboard.

Rate-limited: register (5/min per IP), login (10/min per IP).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from storefront import flows
from storefront.auth import get_request_context, require_identity
from storefront.auth_utils import (
    clear_session_cookie,
    cookie_is_secure,
    create_jwt,
    set_session_cookie,
)
from storefront.config import Settings, get_settings
from storefront.context import Identity, RequestContext
from storefront.db.connection import get_db_session, store_errors
from storefront.errors import AccountInactive, DuplicateEmail, InvalidCredentials
from storefront.rate_limit import get_client_ip, login_limiter, register_limiter
from storefront.schemas import (
    AuthResponse,
    IdentityResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserProfile,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["auth"])


@router.post("/register", response_model=UserProfile, status_code=201)
def register(
    body: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db_session),
) -> UserProfile:
    """Create a customer account. Does not log the new user in."""
    register_limiter.check(get_client_ip(request))

    try:
        user = flows.register(
            db, body.first_name, body.last_name, body.email, body.password
        )
        with store_errors("commit"):
            db.commit()
    except DuplicateEmail as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    return UserProfile.model_validate(user)


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Authenticate with email/password and set the session cookie."""
    login_limiter.check(get_client_ip(request))

    ip = request.client.host if request.client else None
    try:
        record = flows.login(
            db,
            body.email,
            body.password,
            ip_address=ip,
            user_agent=request.headers.get("user-agent"),
            purge_idle_after=settings.session_timeout,
        )
        with store_errors("commit"):
            db.commit()
    except InvalidCredentials as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    except AccountInactive as exc:
        raise HTTPException(status_code=403, detail=str(exc))

    token = create_jwt(record.session_token, str(record.user_id), settings)
    set_session_cookie(response, token, settings, cookie_is_secure(request, settings))

    identity = Identity.from_session(record)
    return AuthResponse(user=IdentityResponse(**identity.as_dict()))


@router.api_route("/logout", methods=["GET", "POST"], response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Destroy the current session and clear the cookie. Safe to repeat."""
    flows.logout(db, context.session_token)
    with store_errors("commit"):
        db.commit()
    clear_session_cookie(response, settings, cookie_is_secure(request, settings))
    return MessageResponse(message="Logged out successfully")


@router.get("/dashboard", response_model=IdentityResponse)
def dashboard(identity: Identity = Depends(require_identity)) -> IdentityResponse:
    """Return the identity snapshot of the logged-in user."""
    return IdentityResponse(**identity.as_dict())
