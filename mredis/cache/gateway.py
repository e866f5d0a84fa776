"""
Cache Gateway Module

Secondary cache used by the cache-aside pipeline. Every gateway exposes the
same coroutine interface:

    await cache.connect()
    await cache.get(key)              -> value or None
    await cache.set(key, value, ttl)
    await cache.close()

``None`` from get() means "absent". Falsy values such as 0 or "" are real
cached values. ``memcached.backend`` picks the gateway: a Memcached server
(default), a Redis server, or an in-process store.
"""

import asyncio
import hashlib
import logging
import pickle
from typing import Any, Callable, Optional

import redis.asyncio as redis
from pymemcache import serde
from pymemcache.client.base import PooledClient
from pymemcache.exceptions import MemcacheError, MemcacheUnexpectedCloseError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from ..config.settings import CacheConfig
from ..errors import CacheError, GatewayConnectionError
from ..events import ErrorStream
from .store import TTLStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]

# Memcached rejects longer keys and keys with spaces or control characters
MAX_MEMCACHED_KEY_LENGTH = 250


def memcached_key(key: str) -> str:
    """Key as sent to Memcached; unusable keys are replaced by their MD5 digest."""
    encoded = key.encode("utf-8")
    if len(encoded) > MAX_MEMCACHED_KEY_LENGTH or any(b <= 32 or b >= 127 for b in encoded):
        return hashlib.md5(encoded).hexdigest()
    return key


class MemcachedCacheGateway:
    """
    Cache stored on a Memcached server.

    pymemcache is blocking, so every call runs in a worker thread on a
    thread-safe pooled client. Values go through pymemcache's pickle serde
    and come back with the type the primary store returned.
    """

    def __init__(
        self,
        config: CacheConfig,
        errors: ErrorStream,
        client_factory: Optional[ClientFactory] = None,
        debug: bool = False,
    ):
        """
        Initialize the gateway. No connection is made until connect().

        Args:
            config: Cache layer settings; ``params`` go to the client as-is
            errors: Stream receiving server failure notifications
            client_factory: Replaces pymemcache's PooledClient
            debug: Log connection events
        """
        self.config = config
        self.errors = errors
        self.client_factory = client_factory or PooledClient
        self.debug = debug
        self._client = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = self.client_factory(
            (self.config.host, self.config.port),
            serde=serde.pickle_serde,
            **self.config.params,
        )
        if self.debug:
            logger.debug(f"Connection established to memcached {self.config.server}")

    def _server_down(self, error: BaseException) -> None:
        self.errors.publish(
            GatewayConnectionError(
                f"Server {self.config.server} went down due to: {error}"
            )
        )

    async def get(self, key: str) -> Optional[Any]:
        """
        Look up a key.

        Raises:
            CacheError: If the server can't be reached or rejects the request
        """
        await self.connect()
        try:
            return await asyncio.to_thread(self._client.get, memcached_key(key))
        except (OSError, MemcacheUnexpectedCloseError) as e:
            self._server_down(e)
            raise CacheError(f"cache get {key} failed: {e}") from e
        except MemcacheError as e:
            raise CacheError(f"cache get {key} failed: {e}") from e

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """
        Store a value for ``ttl`` seconds (0 = no expiry).

        Raises:
            CacheError: If the value was not stored; ``value`` is kept on it
        """
        await self.connect()
        try:
            stored = await asyncio.to_thread(
                self._client.set, memcached_key(key), value, expire=ttl, noreply=False
            )
        except (OSError, MemcacheUnexpectedCloseError) as e:
            self._server_down(e)
            raise CacheError(f"cache set {key} failed: {e}", value) from e
        except (MemcacheError, pickle.PicklingError, TypeError, AttributeError) as e:
            raise CacheError(f"cache set {key} failed: {e}", value) from e
        if not stored:
            raise CacheError(f"cache set {key} was not stored", value)

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await asyncio.to_thread(client.close)


class RedisCacheGateway:
    """
    Cache stored on a dedicated Redis server.

    Values are pickled so that a cached result comes back with the type the
    primary store returned, which is why replies are never decoded. A ttl of
    0 stores the value without expiry.
    """

    def __init__(
        self,
        config: CacheConfig,
        errors: ErrorStream,
        client_factory: Optional[ClientFactory] = None,
        debug: bool = False,
    ):
        """
        Initialize the gateway. No connection is made until connect().

        Args:
            config: Cache layer settings; ``params`` go to the client
            errors: Stream receiving server failure notifications
            client_factory: Replaces redis.asyncio.Redis
            debug: Log connection events
        """
        self.config = config
        self.errors = errors
        self.client_factory = client_factory or redis.Redis
        self.debug = debug
        self._client = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = self.client_factory(
            host=self.config.host,
            port=self.config.port,
            **{**self.config.params, "decode_responses": False},
        )
        if self.debug:
            logger.debug(f"Connection established to redis cache {self.config.server}")

    def _server_down(self, error: BaseException) -> None:
        self.errors.publish(
            GatewayConnectionError(
                f"Server {self.config.server} went down due to: {error}"
            )
        )

    async def get(self, key: str) -> Optional[Any]:
        """
        Look up a key.

        Raises:
            CacheError: If the cache can't be reached or holds garbage
        """
        await self.connect()
        try:
            data = await self._client.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._server_down(e)
            raise CacheError(f"cache get {key} failed: {e}") from e
        except RedisError as e:
            raise CacheError(f"cache get {key} failed: {e}") from e

        if data is None:
            return None
        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, TypeError, ValueError) as e:
            raise CacheError(f"cache get {key} returned an unreadable value: {e}") from e

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """
        Store a value for ``ttl`` seconds.

        Raises:
            CacheError: If the value was not stored; ``value`` is kept on it
        """
        await self.connect()
        try:
            data = pickle.dumps(value)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CacheError(f"cache set {key} can't serialize value: {e}", value) from e

        try:
            stored = await self._client.set(key, data, ex=ttl if ttl > 0 else None)
        except (RedisConnectionError, RedisTimeoutError) as e:
            self._server_down(e)
            raise CacheError(f"cache set {key} failed: {e}", value) from e
        except RedisError as e:
            raise CacheError(f"cache set {key} failed: {e}", value) from e
        if not stored:
            raise CacheError(f"cache set {key} was not stored", value)

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.aclose()


class LocalCacheGateway:
    """In-process cache with the same interface, backed by a TTLStore."""

    def __init__(self, store: Optional[TTLStore] = None):
        self.store = store if store is not None else TTLStore()
        self.gets = 0
        self.sets = 0

    async def connect(self) -> None:
        return None

    async def get(self, key: str) -> Optional[Any]:
        self.gets += 1
        return self.store.get(key)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self.sets += 1
        self.store.put(key, value, ttl)

    async def close(self) -> None:
        return None


def create_cache_gateway(config: CacheConfig, errors: ErrorStream, debug: bool = False):
    """Build the gateway named by ``config.backend``."""
    if config.backend == "local":
        return LocalCacheGateway()
    if config.backend == "redis":
        return RedisCacheGateway(config, errors, debug=debug)
    return MemcachedCacheGateway(config, errors, debug=debug)
