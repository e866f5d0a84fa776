"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import random
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence

import pytest

from mredis.cache.gateway import LocalCacheGateway
from mredis.cache.store import TTLStore
from mredis.client import MultiRedis
from mredis.cluster.topology import Endpoint
from mredis.errors import CacheError, StoreError
from mredis.events import ErrorStream
from mredis.store.gateway import is_redis_command


# ============================================================================
# Fake Store Gateway
# ============================================================================

class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """
    Connection to an in-memory Redis stand-in.

    All endpoints of one host share the same data, so writes on a master
    are immediately visible on its replicas.
    """

    def __init__(self, gateway: "FakeStoreGateway", endpoint: Endpoint):
        self.gateway = gateway
        self.endpoint = endpoint
        self.close_calls = 0

    @property
    def data(self) -> Dict[str, Any]:
        return self.gateway.data.setdefault(self.endpoint.host, {})

    def supports(self, command: str) -> bool:
        return is_redis_command(command)

    async def invoke(self, command: str, args: Sequence[Any]) -> Any:
        self.gateway.calls.append((self.endpoint, command, tuple(args)))
        if self.gateway.fail_with is not None:
            raise self.gateway.fail_with

        key = args[0]
        if command == "set":
            self.data[key] = args[1]
            return True
        if command == "get":
            return self.data.get(key)
        if command == "del":
            return int(self.data.pop(key, None) is not None)
        if command == "incr":
            self.data[key] = int(self.data.get(key, 0)) + 1
            return self.data[key]
        if command == "hset":
            self.data.setdefault(key, {})[args[1]] = args[2]
            return 1
        if command == "hgetall":
            return dict(self.data.get(key, {}))
        raise StoreError(f"fake store has no '{command}'")

    async def close(self) -> None:
        self.close_calls += 1


class FakeStoreGateway:
    """Records every connection and endpoint it is asked for."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Any]] = {}
        self.connections: List[FakeConnection] = []
        self.calls: List[tuple] = []
        self.fail_with: Optional[BaseException] = None

    @asynccontextmanager
    async def connect(self, endpoint: Endpoint):
        connection = FakeConnection(self, endpoint)
        self.connections.append(connection)
        try:
            yield connection
        finally:
            await connection.close()

    @property
    def endpoints(self) -> List[Endpoint]:
        return [connection.endpoint for connection in self.connections]


class FailingCacheGateway(LocalCacheGateway):
    """Local cache whose reads and/or writes raise CacheError."""

    def __init__(self, fail_get: bool = False, fail_set: bool = False, store: TTLStore = None):
        super().__init__(store)
        self.fail_get = fail_get
        self.fail_set = fail_set

    async def get(self, key: str):
        if self.fail_get:
            raise CacheError(f"get {key} failed")
        return await super().get(key)

    async def set(self, key: str, value, ttl: int) -> None:
        if self.fail_set:
            raise CacheError(f"set {key} failed")
        await super().set(key, value, ttl)


# ============================================================================
# Config Fixtures
# ============================================================================

REPLICATED_HOSTS = {
    "localhost": {
        "ports": {6380: ["6381:6382"]},
        "dbname": 1,
        "params": {"max_connections": 5},
    },
}


@pytest.fixture
def replicated_config() -> Dict[str, Any]:
    """One host, master 6380 with replicas 6381-6382, cache disabled."""
    return {"debug": True, "hosts": REPLICATED_HOSTS}


@pytest.fixture
def cached_config() -> Dict[str, Any]:
    """Same topology with the cache enabled and a [2, 6] second expiry."""
    return {
        "debug": True,
        "hosts": REPLICATED_HOSTS,
        "memcached": {"enable": True, "expireInterval": [2, 6]},
    }


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_gateway() -> FakeStoreGateway:
    return FakeStoreGateway()


@pytest.fixture
def cache_gateway(clock: FakeClock) -> LocalCacheGateway:
    return LocalCacheGateway(TTLStore(max_size=100, clock=clock))


@pytest.fixture
def error_stream() -> ErrorStream:
    return ErrorStream()


@pytest.fixture
def failing_cache_factory(clock: FakeClock):
    """
    Factory fixture for caches that raise CacheError.

    Usage:
        def test_something(failing_cache_factory):
            cache = failing_cache_factory(fail_set=True)
    """
    def factory(fail_get: bool = False, fail_set: bool = False) -> FailingCacheGateway:
        return FailingCacheGateway(fail_get, fail_set, TTLStore(max_size=100, clock=clock))
    return factory


@pytest.fixture
def client(replicated_config, store_gateway) -> MultiRedis:
    """Client without cache over the fake store."""
    return MultiRedis(replicated_config, store=store_gateway, rng=random.Random(7))


@pytest.fixture
def cached_client(cached_config, store_gateway, cache_gateway) -> MultiRedis:
    """Client with the local cache over the fake store."""
    return MultiRedis(cached_config, store=store_gateway, cache=cache_gateway, rng=random.Random(7))


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )

