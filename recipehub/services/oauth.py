"""
Google OAuth 2.0 helpers (authorization-code flow).

Used endpoints:
- GET  https://accounts.google.com/o/oauth2/v2/auth        (consent redirect)
- POST https://oauth2.googleapis.com/token                 -> {"access_token", "id_token", ...}
- GET  https://www.googleapis.com/oauth2/v2/userinfo       -> {"id", "email", "given_name", ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..errors import DeliveryError
from ..settings import settings

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


@dataclass
class GoogleProfile:
    google_id: str
    email: str
    first_name: str
    last_name: str
    picture: Optional[str] = None
    email_verified: bool = False


def redirect_uri() -> str:
    return f"{settings.backend_url}/api/v1/auth/google/callback"


def is_configured() -> bool:
    return bool(settings.google_client_id and settings.google_client_secret)


def authorization_url(state: str) -> str:
    params = {
        "client_id": settings.google_client_id or "",
        "redirect_uri": redirect_uri(),
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "online",
        "prompt": "select_account",
        "state": state,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str, timeout_s: float = 10.0) -> str:
    """Trade an authorization code for an access token."""
    try:
        resp = httpx.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "redirect_uri": redirect_uri(),
                "grant_type": "authorization_code",
            },
            timeout=timeout_s,
        )
    except httpx.HTTPError as e:
        raise DeliveryError(f"Google token request failed: {e}") from e

    if resp.status_code != 200:
        raise DeliveryError(f"Google token exchange failed: {resp.status_code} {resp.text[:300]}")
    token = resp.json().get("access_token")
    if not token:
        raise DeliveryError("Google returned no access token.")
    return token


def fetch_profile(access_token: str, timeout_s: float = 10.0) -> GoogleProfile:
    try:
        resp = httpx.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout_s,
        )
    except httpx.HTTPError as e:
        raise DeliveryError(f"Google userinfo request failed: {e}") from e

    if resp.status_code != 200:
        raise DeliveryError(f"Google userinfo failed: {resp.status_code}")

    data = resp.json()
    if not data.get("id") or not data.get("email"):
        raise DeliveryError("Google profile is missing id or email.")
    return GoogleProfile(
        google_id=str(data["id"]),
        email=str(data["email"]).lower(),
        first_name=data.get("given_name") or data["email"].split("@")[0],
        last_name=data.get("family_name") or "",
        picture=data.get("picture"),
        email_verified=bool(data.get("verified_email", False)),
    )
