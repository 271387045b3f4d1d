"""Registration, login/lockout, sessions, password reset, email verification, Google sign-in."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import utcnow, ensure_utc
from ..errors import (
    AccountLocked,
    AuthenticationError,
    Conflict,
    DeliveryError,
    PermissionDenied,
    ValidationFailed,
)
from ..models import User, Session as UserSession, Role, generate_uuid
from ..security import (
    TokenError,
    build_access_token,
    decode_access_token,
    generate_token,
    hash_password,
    hash_token,
    password_problems,
    verify_password,
)
from ..settings import settings
from . import email as email_client
from .oauth import GoogleProfile

logger = logging.getLogger("recipehub.auth")

INVALID_CREDENTIALS = "Invalid email or password"


def _find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def _check_password(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise ValidationFailed("Password does not meet requirements", errors=problems)


def open_session(db: Session, user: User, user_agent: str | None = None, ip_address: str | None = None) -> str:
    """Create a Session row and return the JWT bound to it."""
    session_id = generate_uuid()
    token, expires_at = build_access_token(
        user_id=user.id, email=user.email, role=user.role, session_id=session_id
    )
    db.add(UserSession(
        id=session_id,
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=expires_at,
        user_agent=(user_agent or "")[:500] or None,
        ip_address=ip_address,
    ))
    db.commit()
    return token


def validate_session(db: Session, token: str) -> User:
    try:
        payload = decode_access_token(token)
    except TokenError as e:
        raise AuthenticationError("Invalid or expired token") from e

    session = db.get(UserSession, payload["sid"])
    if session is None or session.token_hash != hash_token(token):
        raise AuthenticationError("Session expired or revoked")

    if ensure_utc(session.expires_at) <= utcnow():
        db.delete(session)
        db.commit()
        raise AuthenticationError("Session expired")

    user = session.user
    if user.is_banned:
        raise PermissionDenied("Your account has been banned")
    return user


def _send_verification(user: User, raw_token: str) -> None:
    try:
        email_client.send_verification_email(user.email, user.first_name, raw_token)
    except DeliveryError as e:
        logger.warning(f"Verification email to {user.email} failed: {e}")


def _issue_verification_token(user: User) -> str:
    raw = generate_token()
    user.email_verification_token = hash_token(raw)
    user.email_verification_expires_at = utcnow() + timedelta(hours=settings.email_verification_ttl_hours)
    return raw


def register(db: Session, *, first_name: str, last_name: str, email: str, password: str,
             agree_to_terms: bool, user_agent: str | None = None,
             ip_address: str | None = None) -> tuple[User, str]:
    if not agree_to_terms:
        raise ValidationFailed("You must agree to the terms and conditions")
    _check_password(password)

    if _find_by_email(db, email):
        raise Conflict("Account already exists")

    user = User(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=Role.USER,
        terms_accepted=True,
    )
    raw_token = _issue_verification_token(user)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("Account already exists") from e
    db.refresh(user)

    logger.info(f"Registered user {user.id}")
    _send_verification(user, raw_token)
    token = open_session(db, user, user_agent, ip_address)
    return user, token


def login(db: Session, *, email: str, password: str, user_agent: str | None = None,
          ip_address: str | None = None) -> tuple[User, str]:
    user = _find_by_email(db, email)
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)

    if user.is_banned:
        reason = user.ban_reason or "No reason provided"
        raise PermissionDenied(f"Your account has been banned. Reason: {reason}")

    now = utcnow()
    blocked_until = ensure_utc(user.blocked_until)
    if blocked_until and blocked_until > now:
        minutes = max(1, int((blocked_until - now).total_seconds() // 60) + 1)
        raise AccountLocked(
            f"Account temporarily locked due to too many failed login attempts. "
            f"Try again in {minutes} minute(s).",
            minutes_remaining=minutes,
        )
    if blocked_until:
        # Lock has run out; start counting again
        user.blocked_until = None
        user.failed_login_attempts = 0

    if not user.password_hash:
        raise ValidationFailed("This account uses Google sign-in. Please log in with Google.")

    if not verify_password(password, user.password_hash):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        user.last_failed_login_at = now
        locked = user.failed_login_attempts >= settings.max_failed_logins
        if locked:
            user.blocked_until = now + timedelta(minutes=settings.lockout_minutes)
        db.commit()
        if locked:
            logger.warning(f"Locked account {user.id} after {user.failed_login_attempts} failed logins")
            raise AccountLocked(
                f"Account temporarily locked due to too many failed login attempts. "
                f"Try again in {settings.lockout_minutes} minute(s).",
                minutes_remaining=settings.lockout_minutes,
            )
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.failed_login_attempts = 0
    user.last_failed_login_at = None
    user.blocked_until = None
    user.last_login_at = now
    db.commit()

    token = open_session(db, user, user_agent, ip_address)
    return user, token


def logout(db: Session, token: str) -> bool:
    deleted = db.query(UserSession).filter(UserSession.token_hash == hash_token(token)).delete()
    db.commit()
    return deleted > 0


def purge_expired_sessions(db: Session) -> int:
    count = db.query(UserSession).filter(UserSession.expires_at <= utcnow()).delete(synchronize_session=False)
    db.commit()
    return count


def forgot_password(db: Session, email: str) -> None:
    user = _find_by_email(db, email)
    if user is None or not user.password_hash:
        return

    raw = generate_token()
    user.reset_token = hash_token(raw)
    user.reset_token_expires_at = utcnow() + timedelta(minutes=settings.password_reset_ttl_minutes)
    db.commit()

    try:
        email_client.send_password_reset_email(user.email, user.first_name, raw)
    except DeliveryError as e:
        logger.warning(f"Password reset email to {user.email} failed: {e}")


def reset_password(db: Session, token: str, new_password: str) -> None:
    _check_password(new_password)

    user = db.query(User).filter(User.reset_token == hash_token(token)).first()
    if user is None or not user.reset_token_expires_at or ensure_utc(user.reset_token_expires_at) <= utcnow():
        raise ValidationFailed("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.reset_token = None
    user.reset_token_expires_at = None
    user.failed_login_attempts = 0
    user.last_failed_login_at = None
    user.blocked_until = None
    db.query(UserSession).filter(UserSession.user_id == user.id).delete()
    db.commit()
    logger.info(f"Password reset for user {user.id}")


def verify_email(db: Session, token: str) -> User:
    user = db.query(User).filter(User.email_verification_token == hash_token(token)).first()
    if (
        user is None
        or not user.email_verification_expires_at
        or ensure_utc(user.email_verification_expires_at) <= utcnow()
    ):
        raise ValidationFailed("Invalid or expired verification token")

    user.is_email_verified = True
    user.email_verification_token = None
    user.email_verification_expires_at = None
    db.commit()
    db.refresh(user)
    return user


def resend_verification(db: Session, email: str) -> None:
    user = _find_by_email(db, email)
    if user is None:
        return
    if user.is_email_verified:
        raise ValidationFailed("Email is already verified")

    raw = _issue_verification_token(user)
    db.commit()
    _send_verification(user, raw)


def login_with_google(db: Session, profile: GoogleProfile, user_agent: str | None = None,
                      ip_address: str | None = None) -> tuple[User, str]:
    """Find by google_id, else link by email, else create a verified USER."""
    user = db.query(User).filter(User.google_id == profile.google_id).first()
    if user is None:
        user = _find_by_email(db, profile.email)
        if user is not None:
            user.google_id = profile.google_id
            user.is_email_verified = True
            if not user.avatar_url and profile.picture:
                user.avatar_url = profile.picture
            logger.info(f"Linked Google account to user {user.id}")
        else:
            user = User(
                email=profile.email,
                password_hash=None,
                first_name=profile.first_name,
                last_name=profile.last_name,
                role=Role.USER,
                terms_accepted=True,
                is_email_verified=True,
                google_id=profile.google_id,
                oauth_provider="google",
                avatar_url=profile.picture,
            )
            db.add(user)
            logger.info(f"Created user from Google sign-in: {profile.email}")

    if user.is_banned:
        db.rollback()
        reason = user.ban_reason or "No reason provided"
        raise PermissionDenied(f"Your account has been banned. Reason: {reason}")

    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    token = open_session(db, user, user_agent, ip_address)
    return user, token
