"""
Forecast Cache Service - TTL cache for finished forecast payloads

Payloads are the JSON dicts returned to clients, stored verbatim.
Redis when FORECAST_REDIS_URL is set and reachable, in-process otherwise.
"""
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import redis

from forecaster.config import get_settings

logger = logging.getLogger(__name__)


def forecast_cache_key(coin_id: str) -> str:
    return f"coin_prediction_{coin_id}"


class ForecastCache(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryForecastCache(ForecastCache):
    """
    In-process cache.

    Expired entries are evicted on read and purged on every write; past
    `max_entries` the entries closest to expiry are dropped first.
    """

    def __init__(self, clock=time.monotonic, max_entries: int = 1024):
        self._clock = clock
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        self.purge_expired()
        self._entries[key] = (self._clock() + ttl_seconds, value)

        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda k: self._entries[k][0])[:overflow]
            for stale_key in oldest:
                del self._entries[stale_key]
        return True

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisForecastCache(ForecastCache):
    """Redis-backed cache; any Redis error reads as a miss"""

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
            if data:
                logger.debug(f"[ForecastCache] HIT {key}")
                return json.loads(data)
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"[ForecastCache] Redis get error for {key}: {e}")
        return None

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> bool:
        try:
            self.client.setex(key, ttl_seconds, json.dumps(value))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"[ForecastCache] Redis set error for {key}: {e}")
            return False

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"[ForecastCache] Redis delete error for {key}: {e}")


def _connect_redis(url: str) -> Optional[redis.Redis]:
    try:
        client = redis.Redis.from_url(url, decode_responses=True)
        client.ping()
        logger.info(f"[ForecastCache] Connected to Redis at {url}")
        return client
    except redis.RedisError as e:
        logger.warning(f"[ForecastCache] Redis not available ({e}), using in-process cache")
        return None


# Global instance
_cache: Optional[ForecastCache] = None


def get_forecast_cache() -> ForecastCache:
    """Get or create forecast cache singleton"""
    global _cache
    if _cache is None:
        settings = get_settings()
        client = _connect_redis(settings.redis_url) if settings.redis_url else None
        _cache = RedisForecastCache(client) if client is not None else MemoryForecastCache()
    return _cache
