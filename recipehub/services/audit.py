from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import AuditLog

logger = logging.getLogger("recipehub.audit")


def record(
    db: Session,
    *,
    admin_id: str,
    action: str,
    target_type: str,
    target_id: str,
    target_name: Optional[str] = None,
    reason: Optional[str] = None,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """Add an audit row to the session. The caller commits."""
    entry = AuditLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        target_name=(target_name or "")[:255] or None,
        reason=reason,
        details=details or {},
        ip_address=ip_address,
    )
    db.add(entry)
    logger.info(f"admin={admin_id} action={action} {target_type}={target_id}")
    return entry
