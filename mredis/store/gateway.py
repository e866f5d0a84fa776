"""
Store Gateway Module

Opens one Redis connection per invocation and runs a named command on it.
The connection is always closed when the invocation leaves connect().
"""

import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

import redis.asyncio as redis
from redis.commands.core import CoreCommands
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from ..cluster.topology import Endpoint
from ..errors import GatewayConnectionError, StoreError
from ..events import ErrorStream

logger = logging.getLogger(__name__)

# Redis command names that are Python keywords
COMMAND_ALIASES = {"del": "delete"}

# Client helpers on the command mixins that do not return an awaitable reply
NON_COMMAND_METHODS = frozenset({"bitfield", "register_script"})

# Replies come back as str unless the endpoint params say otherwise
DEFAULT_CLIENT_PARAMS = {"decode_responses": True}


def method_name(command: str) -> str:
    return COMMAND_ALIASES.get(command, command)


def is_redis_command(name: str) -> bool:
    """True if ``name`` is a public Redis command method of the client."""
    if not name or name.startswith("_"):
        return False
    name = method_name(name)
    if name in NON_COMMAND_METHODS or not hasattr(CoreCommands, name):
        return False
    method = getattr(redis.Redis, name, None)
    if not callable(method):
        return False
    return not (inspect.isasyncgenfunction(method) or inspect.isgeneratorfunction(method))


class RedisConnection:
    """A single Redis client owned by one invocation."""

    def __init__(self, client: redis.Redis, endpoint: Endpoint, errors: ErrorStream):
        self.client = client
        self.endpoint = endpoint
        self.errors = errors
        self.closed = False

    def supports(self, command: str) -> bool:
        return is_redis_command(command)

    async def invoke(self, command: str, args: Sequence[Any]) -> Any:
        """
        Run a command on this connection.

        Raises:
            StoreError: On any Redis failure; connection failures are also
                published on the error stream
        """
        method = getattr(self.client, method_name(command))
        try:
            return await method(*args)
        except (RedisConnectionError, RedisTimeoutError) as e:
            self.errors.publish(
                GatewayConnectionError(f"Redis {self.endpoint.address} connection failed: {e}")
            )
            raise StoreError(f"'{command}' failed on {self.endpoint.address}: {e}") from e
        except (RedisError, TypeError) as e:
            raise StoreError(f"'{command}' failed on {self.endpoint.address}: {e}") from e

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.client.aclose()


class RedisStoreGateway:
    """Creates scoped Redis connections for resolved endpoints."""

    def __init__(self, errors: ErrorStream, debug: bool = False):
        self.errors = errors
        self.debug = debug

    def create_client(self, endpoint: Endpoint) -> redis.Redis:
        return redis.Redis(
            host=endpoint.host,
            port=endpoint.port,
            db=endpoint.db,
            password=endpoint.password,
            **{**DEFAULT_CLIENT_PARAMS, **endpoint.params},
        )

    @asynccontextmanager
    async def connect(self, endpoint: Endpoint) -> AsyncIterator[RedisConnection]:
        """
        Open a connection for the duration of the ``async with`` block.

        Args:
            endpoint: Resolved endpoint (auth and db are applied by the client)
        """
        connection = RedisConnection(self.create_client(endpoint), endpoint, self.errors)
        if self.debug:
            logger.debug(f"Connection established to {endpoint.address} db={endpoint.db}")
        try:
            yield connection
        finally:
            await connection.close()
            if self.debug:
                logger.debug(f"Connection to {endpoint.address} closed")
