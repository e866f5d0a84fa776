"""
Cache-Aside Client

MultiRedis routes each command to a Redis instance chosen from the key and
puts cacheable reads behind a cache.

Every invocation runs these steps in order, never reordered:

    1. cache check      cache enabled and command cacheable
    2. primary call     on a miss, or directly for everything else
    3. cache refill     primary call succeeded and the cache was consulted

Usage:
    async with MultiRedis(config) as client:
        await client.execute("set", ["key1", 42])
        value = await client.execute("get", ["key1"])
"""

import asyncio
import logging
import random
import threading
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from .cache.gateway import create_cache_gateway
from .cluster.selector import ShardSelector, jittered_ttl
from .cluster.topology import Topology, resolve_topology
from .config.settings import Config, build_config
from .errors import CacheError, UnsupportedCommandError
from .events import ErrorStream
from .protocol.commands import Invocation, cache_key_for
from .store.gateway import RedisStoreGateway

logger = logging.getLogger(__name__)

ResultCallback = Callable[[Optional[BaseException], Any], None]


class MultiRedis:
    """
    Sharded Redis client with an optional cache-aside layer.

    Attributes:
        config: Merged configuration
        topology: Resolved hosts/shards
        selector: Key to endpoint router
        errors: Stream of out-of-band errors
    """

    def __init__(
        self,
        config: Union[Config, Mapping[str, Any], None] = None,
        store: Optional[Any] = None,
        cache: Optional[Any] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the client. No connection is opened here.

        Args:
            config: Config instance or raw mapping merged over the defaults
            store: Store gateway (default: RedisStoreGateway)
            cache: Cache gateway (default: built from ``memcached.backend``)
            rng: Random source for replica choice and expiry jitter

        Raises:
            ConfigError: If the configuration or hosts declaration is invalid
        """
        self.config = config if isinstance(config, Config) else build_config(config)
        self.debug = self.config.debug
        self.rng = rng or random.Random()

        self.topology: Topology = resolve_topology(self.config)
        self.selector = ShardSelector(self.topology, rng=self.rng, debug=self.debug)
        self.errors = ErrorStream()

        self.use_cache = self.config.memcached.enable
        self.store = store if store is not None else RedisStoreGateway(self.errors, debug=self.debug)
        if cache is None and self.use_cache:
            cache = create_cache_gateway(self.config.memcached, self.errors, debug=self.debug)
        self.cache = cache

        self._call_count = 0
        self._counter_lock = threading.Lock()

    @property
    def call_count(self) -> int:
        """Number of execute() calls made on this client."""
        return self._call_count

    def _next_call_number(self) -> int:
        with self._counter_lock:
            self._call_count += 1
            return self._call_count

    def _log(self, message: str, block: str) -> None:
        if self.debug:
            logger.debug(f"[{block}] {message}")

    async def execute(self, command: str, args: Sequence[Any] = ()) -> Any:
        """
        Run one command.

        Args:
            command: Redis command name, e.g. "get" or "hset"
            args: Command arguments; args[0] is the routing key

        Returns:
            The command result, from the cache or the primary store

        Raises:
            UnsupportedCommandError: If Redis has no such command
            StoreError: If the primary store call fails
            CacheError: If the cache refill fails; ``error.value`` holds
                the valid primary result
        """
        invocation = Invocation(command=command, args=tuple(args), number=self._next_call_number())
        self._log(f"'{invocation.command}' {invocation.args!r}", "execute")

        if self.use_cache and invocation.is_cacheable and invocation.args:
            hit, value = await self._cache_check(invocation)
            if hit:
                return value

        value = await self._primary_call(invocation)

        if invocation.cache_consulted:
            await self._cache_refill(invocation, value)
        return value

    async def _cache_check(self, invocation: Invocation):
        invocation.cache_consulted = True
        cache_key = cache_key_for(invocation.command, invocation.args)
        self._log(f"Searching record in the cache {cache_key}", "cache")

        try:
            value = await self.cache.get(cache_key)
        except CacheError as e:
            logger.warning(f"Cache lookup for {cache_key} failed, using primary store: {e}")
            return False, None

        if value is None:
            return False, None

        self._log(f"Record was found in cache. {cache_key} => {value!r}", "cache")
        return True, value

    async def _primary_call(self, invocation: Invocation) -> Any:
        endpoint = self.selector.select(invocation.key, invocation.command)

        async with self.store.connect(endpoint) as connection:
            if not connection.supports(invocation.command):
                raise UnsupportedCommandError(invocation.command)
            value = await connection.invoke(invocation.command, invocation.args)

        self._log(f"'{invocation.command}' command completed on {endpoint.address}", "execute")
        return value

    async def _cache_refill(self, invocation: Invocation, value: Any) -> None:
        cache_key = cache_key_for(invocation.command, invocation.args)
        ttl = jittered_ttl(self.config.memcached.expire_interval, self.rng)
        self._log(f"Cache set {cache_key} => {value!r} with expire time {ttl}", "cache")

        try:
            await self.cache.set(cache_key, value, ttl)
        except CacheError as e:
            e.value = value
            raise

    def dispatch(
        self,
        command: str,
        args: Sequence[Any] = (),
        callback: Optional[ResultCallback] = None,
    ) -> "asyncio.Task":
        """
        Schedule a command and report the outcome to ``callback(error, value)``.

        The callback runs exactly once: ``(None, value)`` on success,
        ``(error, None)`` on failure, and ``(CacheError, value)`` when only
        the cache refill failed. An exception raised by the callback is
        published on the error stream. Must be called from a running event
        loop.

        Returns:
            The task running the command; it never raises
        """

        async def run() -> Any:
            try:
                value = await self.execute(command, args)
            except CacheError as e:
                error, value = e, e.value
            except Exception as e:
                error, value = e, None
            else:
                error = None
            if callback is None:
                if error is not None:
                    self.errors.publish(error)
                return value
            try:
                callback(error, value)
            except Exception as e:
                self.errors.publish(e)
            return value

        return asyncio.get_running_loop().create_task(run())

    async def close(self) -> None:
        """Close the cache connection, if one was opened."""
        if self.cache is not None:
            await self.cache.close()

    async def __aenter__(self) -> "MultiRedis":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (f"MultiRedis(hosts={self.topology.hosts}, "
                f"cache={'on' if self.use_cache else 'off'}, "
                f"calls={self.call_count})")
