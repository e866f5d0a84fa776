"""Primary store gateway for mredis."""

from .gateway import RedisConnection, RedisStoreGateway, is_redis_command

__all__ = ["RedisConnection", "RedisStoreGateway", "is_redis_command"]
