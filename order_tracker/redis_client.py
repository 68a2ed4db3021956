import redis.asyncio as redis

_redis: redis.Redis | None = None


async def get_redis(url: str | None) -> redis.Redis | None:
    """Shared client for url, or None when no redis URL is configured."""
    global _redis
    if not url:
        return None
    if _redis is None:
        _redis = redis.from_url(url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def check_idempotency(r: redis.Redis | None, key: str, ttl_seconds: int) -> bool:
    """
    Returns True if this key was already seen (duplicate) -> caller should return 200.
    Returns False if key is new, or if no redis is configured -> caller should proceed.
    Uses SET NX: if we set it, we're first; if not, duplicate.
    """
    if r is None:
        return False
    was_set = await r.set(key, "1", nx=True, ex=ttl_seconds)
    return not was_set
