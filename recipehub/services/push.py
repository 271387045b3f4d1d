"""
Push notifications through the FCM legacy HTTP endpoint.

Used endpoint:
- POST https://fcm.googleapis.com/fcm/send
    -> {"success": n, "failure": n, "results": [{"message_id"} | {"error"}]}

Without FCM_SERVER_KEY pushes are logged instead of sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from ..errors import DeliveryError
from ..settings import settings

logger = logging.getLogger("recipehub.push")

FCM_URL = "https://fcm.googleapis.com/fcm/send"

# Errors meaning the token will never work again
DEAD_TOKEN_ERRORS = {"NotRegistered", "InvalidRegistration", "MismatchSenderId"}


@dataclass
class PushResult:
    sent: int = 0
    failed: int = 0
    dead_tokens: list[str] = field(default_factory=list)


def send_push(tokens: list[str], *, title: str, body: str, data: dict | None = None,
              timeout_s: float = 10.0) -> PushResult:
    if not tokens:
        return PushResult()

    if not (settings.fcm_server_key or "").strip():
        logger.info(f"[dev push] {len(tokens)} token(s) title={title!r}")
        return PushResult(sent=len(tokens))

    payload = {
        "registration_ids": tokens,
        "notification": {"title": title, "body": body},
        "data": {k: str(v) for k, v in (data or {}).items() if v is not None},
    }
    try:
        resp = httpx.post(
            FCM_URL,
            headers={"Authorization": f"key={settings.fcm_server_key}"},
            json=payload,
            timeout=timeout_s,
        )
    except httpx.HTTPError as e:
        raise DeliveryError(f"Push request failed: {e}") from e

    if resp.status_code != 200:
        raise DeliveryError(f"Push provider error: {resp.status_code} {resp.text[:300]}")

    result = PushResult()
    try:
        for token, item in zip(tokens, resp.json().get("results", [])):
            error = item.get("error")
            if error:
                result.failed += 1
                if error in DEAD_TOKEN_ERRORS:
                    result.dead_tokens.append(token)
            else:
                result.sent += 1
    except (ValueError, AttributeError, TypeError) as e:
        raise DeliveryError(f"Unreadable push provider response: {resp.text[:300]}") from e
    return result
