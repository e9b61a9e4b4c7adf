# app/services/redis_client.py
import json
import logging

import redis

from app.config import REDIS_URL, SETTINGS_CACHE_TTL

logger = logging.getLogger(__name__)

_client = None


def get_client():
    """Lazily build the Redis client; None when caching is disabled."""
    global _client
    if not REDIS_URL:
        return None
    if _client is None:
        _client = redis.Redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=1)
    return _client


def cache_get(key: str):
    client = get_client()
    if client is None:
        return None
    try:
        data = client.get(key)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis unavailable, reading {key} from the database: {e}")
        return None
    return json.loads(data) if data else None


def cache_set(key: str, value, expire_sec: int = SETTINGS_CACHE_TTL):
    """Save a JSON-serialisable value with TTL (default SETTINGS_CACHE_TTL)."""
    client = get_client()
    if client is None:
        return
    try:
        client.set(key, json.dumps(value), ex=expire_sec)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Could not cache {key}: {e}")


def cache_delete(key: str):
    client = get_client()
    if client is None:
        return
    try:
        client.delete(key)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Could not invalidate {key}: {e}")
