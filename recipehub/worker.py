"""Maintenance worker.

Polls periodically and:
1. Deletes expired login sessions
2. Deletes push tokens that are inactive or unused for 30 days

Usage:
    python -m recipehub.worker
"""

import logging
import os
import sys
import time
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import init_engine, SessionLocal
from .services import auth_service, notification_service
from .settings import settings

POLL_INTERVAL = int(os.environ.get("POLL_INTERVAL", "300"))
WORKER_ID = f"worker-{uuid.uuid4().hex[:8]}"

logger = logging.getLogger("recipehub.worker")


def run_once(db: Session) -> dict:
    """One maintenance pass. Returns the number of rows removed per task."""
    sessions = auth_service.purge_expired_sessions(db)
    tokens = notification_service.cleanup_push_tokens(db)
    if sessions or tokens:
        logger.info(f"[{WORKER_ID}] Purged {sessions} expired session(s), {tokens} stale push token(s)")
    return {"sessions": sessions, "push_tokens": tokens}


def main():
    """Main worker loop."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logger.info(f"[{WORKER_ID}] Starting (Poll: {POLL_INTERVAL}s)")
    logger.info(f"[{WORKER_ID}] Environment: {settings.environment}")

    init_engine()

    while True:
        try:
            with SessionLocal()() as db:
                run_once(db)
        except SQLAlchemyError as e:
            logger.error(f"[{WORKER_ID}] Loop error: {e}")
            time.sleep(1)

        time.sleep(POLL_INTERVAL)


if __name__ == "__main__":
    main()
