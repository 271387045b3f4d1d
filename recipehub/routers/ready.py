import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..infra.redis_client import get_sync_redis
from ..storage.s3_compat import get_store

router = APIRouter()
logger = logging.getLogger("recipehub.ready")


@router.get("/health")
def health():
    return {"status": "success", "message": "RecipeHub API is running"}


# plain def: every check below blocks, so FastAPI runs it in the threadpool
@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning(f"Database not ready: {e}")

    redis_ok = False
    try:
        get_sync_redis().ping()
        redis_ok = True
    except (RedisError, OSError) as e:
        logger.warning(f"Redis not ready: {e}")

    storage_ok = False
    try:
        storage_ok = get_store().healthcheck()
    except (BotoCoreError, ClientError, OSError) as e:
        logger.warning(f"Storage not ready: {e}")

    # redis is optional (analytics cache only)
    return {"ok": db_ok and storage_ok, "db_ok": db_ok, "redis_ok": redis_ok, "storage_ok": storage_ok}
