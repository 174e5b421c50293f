"""
Redis caching utilities for frequently accessed data
Reduces database load for pricing lookups
"""
import json
import logging
from typing import Any, Optional

from .config import CACHE_ENABLED
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

PRICE_CACHE_TTL = 300  # 5 minutes


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, enabled: bool = CACHE_ENABLED):
        self.enabled = enabled
        self.redis_client = None

    def _get_client(self):
        """Lazy load Redis client"""
        if not self.enabled:
            return None
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.debug(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()


def build_price_key(service_id: str, vehicle_size: str) -> str:
    return f"price:{service_id}:{vehicle_size}"


def get_price_cached(service_id: str, vehicle_size: str) -> Optional[int]:
    return cache.get(build_price_key(service_id, vehicle_size))


def set_price_cached(service_id: str, vehicle_size: str, price_pence: int) -> bool:
    """Cache a resolved price (5 minute TTL)"""
    return cache.set(build_price_key(service_id, vehicle_size), price_pence, PRICE_CACHE_TTL)
