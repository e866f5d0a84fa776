"""Cache module for mredis."""

from .gateway import (
    LocalCacheGateway,
    MemcachedCacheGateway,
    RedisCacheGateway,
    create_cache_gateway,
)
from .store import TTLStore

__all__ = [
    "LocalCacheGateway",
    "MemcachedCacheGateway",
    "RedisCacheGateway",
    "TTLStore",
    "create_cache_gateway",
]
