import json
import logging

import redis.asyncio as redis

from blog_panel.config import settings

logger = logging.getLogger(__name__)

# First path segments that are a version/namespace prefix rather than a
# resource name, e.g. ``/api/v1/posts`` -> ``posts``.
_PATH_PREFIXES = frozenset({"api"})

# ``Session.info`` key holding the paths to sweep once a transaction commits.
PENDING_SWEEPS = "cache_pending_sweeps"


def resource_segment(path: str) -> str | None:
    """
    Return the resource name a URL path addresses.

    ``/api/v1/users/3/role`` -> ``users``; ``/health`` -> ``health``.
    Version segments (``v1``, ``v2``...) after the ``api`` prefix are
    skipped.  Returns None for the root path.
    """
    parts = [p for p in path.split("/") if p]
    while parts and (parts[0] in _PATH_PREFIXES or _is_version(parts[0])):
        parts.pop(0)
    return parts[0] if parts else None


def _is_version(segment: str) -> bool:
    return len(segment) > 1 and segment[0] == "v" and segment[1:].isdigit()


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    read operations return None and write operations are silently skipped,
    so the application degrades gracefully without raising exceptions to
    callers.  Only caller mistakes (an empty key, a missing TTL) raise.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """
        Return the cached value for *key*, or None on a miss / error.

        Increments hit/miss counters for observability.
        """
        if not key:
            raise ValueError("Key is required")
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
            if data is not None:
                self._hits += 1
                return json.loads(data)
            self._misses += 1
            return None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None

    async def set(self, key: str, value: dict | list, ttl: int) -> None:
        """
        Persist *value* under *key* for *ttl* seconds.

        Serialisation errors and Redis failures are logged but never
        propagated; a cache write failure must never break a request.
        """
        if not key:
            raise ValueError("Key is required")
        if not ttl or ttl <= 0:
            raise ValueError("TTL is required")
        if not self._redis:
            return
        try:
            serialised = json.dumps(value, default=str)
            await self._redis.set(key, serialised, ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching *pattern* using SCAN (avoids blocking KEYS).

        Returns the number of keys removed.
        """
        if not self._redis:
            return 0
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
            return len(keys)
        except Exception as exc:
            logger.warning("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)
            return 0

    # ------------------------------------------------------------------
    # Invalidation sweep
    # ------------------------------------------------------------------

    async def invalidate_path(self, path: str) -> int:
        """
        Drop every key that mentions the resource addressed by *path*.

        ``/api/v1/posts/7/comments`` sweeps ``*posts*``.  Cache keys are
        named after the router prefix they back, so this reaches list,
        detail and slug entries alike.
        """
        segment = resource_segment(path)
        if segment is None:
            return 0
        return await self.delete_pattern(f"*{segment}*")

    def invalidate_after_commit(self, db, path: str) -> None:
        """
        Queue a sweep of *path* on *db*'s transaction.

        Services use this for writes that stale another resource's cache.
        ``get_db`` runs the queue once the commit has landed and drops it
        on rollback.
        """
        db.info.setdefault(PENDING_SWEEPS, set()).add(path)

    async def run_pending(self, db) -> int:
        """Sweep every path queued on *db*; returns the keys removed."""
        removed = 0
        for path in sorted(db.info.pop(PENDING_SWEEPS, ())):
            removed += await self.invalidate_path(path)
        return removed

    def discard_pending(self, db) -> None:
        db.info.pop(PENDING_SWEEPS, None)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for the health endpoint."""
        total = self._hits + self._misses
        return {
            "enabled": self.enabled,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# ---------------------------------------------------------------------------
# Key builders: every key starts with the router prefix it backs so that
# ``invalidate_path`` can find it.
# ---------------------------------------------------------------------------

def users_list_key(offset: int, limit: int, q: str | None = None) -> str:
    return f"users:list:{offset}:{limit}:{q or ''}"


def user_detail_key(user_id: int) -> str:
    return f"users:detail:{user_id}"


def roles_list_key() -> str:
    return "roles:list"


def posts_list_key(page: int, page_size: int, sort_by: str, sort_order: str,
                   category: str | None = None, tag: str | None = None) -> str:
    return f"posts:list:{page}:{page_size}:{sort_by}:{sort_order}:{category or ''}:{tag or ''}"


def post_detail_key(post_id: int) -> str:
    return f"posts:detail:{post_id}"


def post_slug_key(slug: str) -> str:
    return f"posts:slug:{slug}"


# Module-level singleton shared across all request handlers.
cache = CacheManager()
