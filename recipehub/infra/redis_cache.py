import json
import logging

from redis.exceptions import RedisError

from .redis_client import get_sync_redis

logger = logging.getLogger("recipehub.cache")


def get_json_sync(key: str):
    raw = get_sync_redis().get(key)
    return json.loads(raw) if raw else None


def set_json_sync(key: str, value, ttl_sec: int) -> None:
    get_sync_redis().set(key, json.dumps(value, default=str), ex=ttl_sec)


def get_or_set_json_sync(key: str, ttl_sec: int, compute_func):
    """Return (value, cache_hit). A Redis outage degrades to computing every time."""
    try:
        hit = get_json_sync(key)
    except RedisError as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return compute_func(), False
    if hit is not None:
        return hit, True

    val = compute_func()
    try:
        set_json_sync(key, val, ttl_sec)
    except RedisError as e:
        logger.warning(f"Cache write failed for {key}: {e}")
    return val, False


def delete_prefix_sync(prefix: str) -> int:
    r = get_sync_redis()
    keys = list(r.scan_iter(match=f"{prefix}*"))
    if not keys:
        return 0
    return r.delete(*keys)
