"""
Password hashing, JWT and one-time token helpers.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from datetime import datetime, timedelta
from typing import Any

import bcrypt
import jwt

from .core.clock import utcnow
from .settings import settings


class TokenError(RuntimeError):
    pass


_PASSWORD_LETTER = re.compile(r"[A-Za-z]")
_PASSWORD_DIGIT = re.compile(r"\d")
# bcrypt input limit
MAX_PASSWORD_BYTES = 72


def password_problems(password: str) -> list[str]:
    problems = []
    if len(password or "") < 8:
        problems.append("Password must be at least 8 characters long")
    if not _PASSWORD_LETTER.search(password or ""):
        problems.append("Password must contain at least one letter")
    if not _PASSWORD_DIGIT.search(password or ""):
        problems.append("Password must contain at least one number")
    if len((password or "").encode("utf-8")) > MAX_PASSWORD_BYTES:
        problems.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    return problems


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise ValueError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def build_access_token(*, user_id: str, email: str, role: str, session_id: str) -> tuple[str, datetime]:
    issued_at = utcnow()
    expires_at = issued_at + timedelta(minutes=settings.jwt_expires_minutes)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "sid": session_id,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_at


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise TokenError("Access token is empty.")
    try:
        payload = jwt.decode(raw, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc
    if not payload.get("sub") or not payload.get("sid"):
        raise TokenError("Invalid token")
    return payload


def sign_state(data: dict[str, Any], minutes: int = 10) -> str:
    """Short-lived signed value for the OAuth `state` round trip."""
    payload = dict(data)
    payload["exp"] = int((utcnow() + timedelta(minutes=minutes)).timestamp())
    payload["nonce"] = secrets.token_urlsafe(8)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_state(state: str) -> dict[str, Any]:
    try:
        return jwt.decode(state, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid OAuth state") from exc


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(raw_token: str) -> str:
    token = (raw_token or "").encode("utf-8")
    if not token:
        raise TokenError("Token is empty.")
    return hashlib.sha256(token).hexdigest()
