"""Lazily created redis client shared by the analytics cache and /ready."""

from redis import Redis as SyncRedis

from ..settings import settings

_redis_sync: SyncRedis | None = None

CONNECT_TIMEOUT_S = 2.0


def redis_url() -> str:
    return settings.redis_url


def get_sync_redis() -> SyncRedis:
    global _redis_sync
    if _redis_sync is None:
        _redis_sync = SyncRedis.from_url(
            redis_url(), decode_responses=True, socket_connect_timeout=CONNECT_TIMEOUT_S
        )
    return _redis_sync
