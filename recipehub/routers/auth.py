"""Authentication endpoints.

Endpoints:
- POST /auth/register, /auth/login, /auth/logout
- GET  /auth/me
- POST /auth/forgot-password, /auth/reset-password
- GET  /auth/verify-email/{token}, POST /auth/resend-verification
- GET  /auth/google, /auth/google/callback, POST /auth/google/mobile
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..core.responses import ok
from ..db import get_db
from ..deps import bearer_token, client_ip, get_current_user, user_agent
from ..errors import AuthenticationError, DeliveryError, ServiceError, ValidationFailed
from ..infra.rate_limit import limiter
from ..models import User
from ..schemas import AuthOut, EmailIn, GoogleMobileIn, LoginIn, RegisterIn, ResetPasswordIn, UserOut
from ..security import TokenError, sign_state, verify_state
from ..services import auth_service, oauth
from ..settings import settings

router = APIRouter()
logger = logging.getLogger("recipehub.auth")


def _auth_payload(user: User, token: str) -> AuthOut:
    return AuthOut(user=UserOut.model_validate(user), token=token)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterIn,
    request: Request,
    db: Session = Depends(get_db),
    ua: Optional[str] = Depends(user_agent),
):
    user, token = auth_service.register(
        db,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        agree_to_terms=body.agree_to_terms,
        user_agent=ua,
        ip_address=client_ip(request),
    )
    return ok(_auth_payload(user, token), "Registration successful. Please check your email to verify your account.")


@router.post("/login")
@limiter.limit(settings.rate_limit_login)
def login(
    body: LoginIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    ua: Optional[str] = Depends(user_agent),
):
    user, token = auth_service.login(
        db, email=body.email, password=body.password, user_agent=ua, ip_address=client_ip(request)
    )
    return ok(_auth_payload(user, token), "Login successful")


@router.post("/logout")
def logout(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(bearer_token),
    _user: User = Depends(get_current_user),
):
    auth_service.logout(db, token)
    return ok(message="Logout successful")


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return ok({"user": UserOut.model_validate(user)})


@router.post("/forgot-password")
def forgot_password(body: EmailIn, db: Session = Depends(get_db)):
    auth_service.forgot_password(db, body.email)
    return ok(message="If an account exists with this email, a password reset link has been sent.")


@router.post("/reset-password")
def reset_password(body: ResetPasswordIn, db: Session = Depends(get_db)):
    auth_service.reset_password(db, body.token, body.new_password)
    return ok(message="Password has been reset successfully. Please log in.")


@router.get("/verify-email/{token}")
def verify_email(token: str, db: Session = Depends(get_db)):
    user = auth_service.verify_email(db, token)
    return ok({"user": UserOut.model_validate(user)}, "Email verified successfully")


@router.get("/verify-email")
def verify_email_query(token: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return verify_email(token, db)


@router.post("/resend-verification")
def resend_verification(body: EmailIn, db: Session = Depends(get_db)):
    auth_service.resend_verification(db, body.email)
    return ok(message="If an account exists with this email, a verification link has been sent.")


# --- Google OAuth ---

def _frontend_redirect(path: str, **params) -> RedirectResponse:
    return RedirectResponse(f"{settings.frontend_url}{path}?{urlencode(params)}", status_code=302)


@router.get("/google")
def google_login():
    if not oauth.is_configured():
        raise ServiceError("Google sign-in is not configured")
    state = sign_state({"provider": "google"})
    return RedirectResponse(oauth.authorization_url(state), status_code=302)


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    ua: Optional[str] = Depends(user_agent),
):
    if error or not code or not state:
        return _frontend_redirect("/login", error=error or "oauth_failed")
    try:
        verify_state(state)
    except TokenError:
        return _frontend_redirect("/login", error="invalid_state")

    try:
        profile = oauth.fetch_profile(oauth.exchange_code(code))
        _user, token = auth_service.login_with_google(db, profile, ua, client_ip(request))
    except DeliveryError as e:
        logger.warning(f"Google callback failed: {e}")
        return _frontend_redirect("/login", error="oauth_failed")
    except ServiceError as e:
        return _frontend_redirect("/login", error=e.message)
    return _frontend_redirect("/auth/callback", token=token)


@router.post("/google/mobile")
def google_mobile(
    body: GoogleMobileIn,
    request: Request,
    db: Session = Depends(get_db),
    ua: Optional[str] = Depends(user_agent),
):
    try:
        profile = oauth.fetch_profile(body.access_token)
    except DeliveryError as e:
        logger.warning(f"Google mobile sign-in failed: {e}")
        raise AuthenticationError("Invalid Google access token") from e
    if not profile.email:
        raise ValidationFailed("Google account has no email")
    user, token = auth_service.login_with_google(db, profile, ua, client_ip(request))
    return ok(_auth_payload(user, token), "Login successful")
