"""
Transactional email via the Resend HTTP API.

Used endpoint:
- POST https://api.resend.com/emails  -> {"id": "..."}

Without RESEND_API_KEY the message is logged instead of sent.
"""

from __future__ import annotations

import html
import logging

import httpx

from ..errors import DeliveryError
from ..settings import settings

logger = logging.getLogger("recipehub.email")

RESEND_URL = "https://api.resend.com/emails"


def send_email(*, to: str, subject: str, html_body: str, timeout_s: float = 10.0) -> bool:
    """Returns True if the provider accepted the message, False in dev mode."""
    if settings.email_dev_mode:
        logger.info(f"[dev email] to={to} subject={subject!r}")
        return False

    try:
        resp = httpx.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json={"from": settings.email_from, "to": [to], "subject": subject, "html": html_body},
            timeout=timeout_s,
        )
    except httpx.HTTPError as e:
        raise DeliveryError(f"Email request failed: {e}") from e

    if resp.status_code >= 300:
        raise DeliveryError(f"Email provider rejected message: {resp.status_code} {resp.text[:300]}")
    return True


def _layout(title: str, body: str, button_label: str | None = None, button_url: str | None = None) -> str:
    button = ""
    if button_label and button_url:
        button = (
            f'<p><a href="{html.escape(button_url)}" '
            f'style="background:#16a34a;color:#fff;padding:10px 18px;border-radius:6px;text-decoration:none">'
            f"{html.escape(button_label)}</a></p>"
        )
    return f"<h2>{html.escape(title)}</h2><p>{html.escape(body)}</p>{button}"


def send_verification_email(email: str, first_name: str, token: str) -> bool:
    url = f"{settings.frontend_url}/verify-email?token={token}"
    return send_email(
        to=email,
        subject="Verify your RecipeHub email",
        html_body=_layout(
            f"Welcome, {first_name}!",
            "Confirm your email address to finish setting up your account. The link expires in 24 hours.",
            "Verify email",
            url,
        ),
    )


def send_password_reset_email(email: str, first_name: str, token: str) -> bool:
    url = f"{settings.frontend_url}/reset-password?token={token}"
    return send_email(
        to=email,
        subject="Reset your RecipeHub password",
        html_body=_layout(
            f"Hi {first_name},",
            "We received a request to reset your password. The link expires in 1 hour. "
            "If you did not ask for this, you can ignore this email.",
            "Reset password",
            url,
        ),
    )


def send_notification_email(email: str, title: str, description: str, action_url: str | None = None) -> bool:
    url = f"{settings.frontend_url}{action_url}" if action_url else None
    return send_email(
        to=email,
        subject=title,
        html_body=_layout(title, description, "Open RecipeHub" if url else None, url),
    )
