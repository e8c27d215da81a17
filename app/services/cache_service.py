"""
Redis cache for per-branch aggregates (dashboard KPIs, reports).

Entries are keyed by branch so one branch's sale never serves or clears
another branch's numbers. When Redis is disabled or unreachable every
call degrades to a miss and the caller computes the value directly.
"""

import logging
import json
from typing import Any, Callable, Iterable, Optional
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

DECIMAL_TAG = '__decimal__'
BRANCH_MODULES = ('dashboard', 'reports')


def _encode(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return {DECIMAL_TAG: str(obj)}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Cannot cache value of type {type(obj).__name__}")


def _decode(obj: dict) -> Any:
    if DECIMAL_TAG in obj:
        return Decimal(obj[DECIMAL_TAG])
    return obj


class CacheService:
    """
    Branch-scoped cache-aside store.

    Key layout: {prefix}:branch:{branch_id}:{module}:{key}
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.enabled = False
        self.prefix = 'pos'
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', 'pos')
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] disabled by configuration")
            return

        url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {url} ({e}); running without cache")
            return

        self.client = client
        self.enabled = True
        logger.info(f"[CACHE] connected to {url}")

    def is_available(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key_for(self, branch_id: int, module: str, key: str) -> str:
        return f"{self.prefix}:branch:{branch_id}:{module}:{key}"

    def get(self, branch_id: int, module: str, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self.key_for(branch_id, module, key))
        except RedisError as e:
            logger.warning(f"[CACHE] read failed for branch {branch_id} {module}/{key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw, object_hook=_decode)
        except ValueError:
            logger.warning(f"[CACHE] discarding unreadable entry {module}/{key} of branch {branch_id}")
            return None

    def set(self, branch_id: int, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self.key_for(branch_id, module, key), ttl, json.dumps(value, default=_encode))
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] write failed for branch {branch_id} {module}/{key}: {e}")
            return False
        return True

    def memoize(self, branch_id: int, module: str, key: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """Return the cached value or compute it with loader_fn and store it."""
        cached = self.get(branch_id, module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(branch_id, module, key, value, ttl)
        return value

    def invalidate_branch(self, branch_id: int, modules: Iterable[str] = BRANCH_MODULES) -> int:
        """Drop the branch's cached aggregates after its stock or sales change."""
        if not self.enabled:
            return 0
        removed = 0
        try:
            for module in modules:
                keys = list(self.client.scan_iter(match=self.key_for(branch_id, module, '*'), count=100))
                if keys:
                    removed += self.client.delete(*keys)
        except RedisError as e:
            logger.warning(f"[CACHE] invalidation failed for branch {branch_id}: {e}")
        if removed:
            logger.info(f"[CACHE] invalidated {removed} key(s) for branch {branch_id}")
        return removed


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def invalidate_branch_cache(branch_id: int) -> None:
    """Invalidate dashboard and report caches for a branch."""
    try:
        get_cache().invalidate_branch(branch_id)
    except RuntimeError as e:
        logger.warning(f"[CACHE] invalidation skipped for branch {branch_id}: {e}")
