"""
mredis: Sharded Redis Client

Routes Redis commands across master/replica groups by key and keeps
cacheable reads behind a cache-aside layer (Memcached by default).
"""

from .client import MultiRedis
from .errors import (
    CacheError,
    ConfigError,
    GatewayConnectionError,
    MRedisError,
    StoreError,
    UnsupportedCommandError,
)

__version__ = "1.0.0"

__all__ = [
    "MultiRedis",
    "CacheError",
    "ConfigError",
    "GatewayConnectionError",
    "MRedisError",
    "StoreError",
    "UnsupportedCommandError",
]
