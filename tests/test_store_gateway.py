"""
Tests for the Redis store gateway.

No Redis server is needed: connection tests inspect the client
configuration, command tests use a stand-in client, and reply decoding is
checked against a minimal RESP server on a local port.

Run with: python -m pytest tests/test_store_gateway.py -v
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from mredis.client import MultiRedis
from mredis.cluster.topology import Endpoint
from mredis.errors import GatewayConnectionError, StoreError
from mredis.store.gateway import RedisConnection, RedisStoreGateway, is_redis_command

ENDPOINT = Endpoint("localhost", 6380, password="secret", db=1, params={"socket_timeout": 2})


class StubClient:
    """Async client answering a few commands."""

    def __init__(self, error=None):
        self.error = error
        self.close_calls = 0

    async def get(self, key):
        if self.error:
            raise self.error
        return b"42"

    async def hset(self, key, field, value):
        if self.error:
            raise self.error
        return 1

    async def aclose(self):
        self.close_calls += 1


class TestCommandSupport:
    """Test which names count as Redis commands."""

    @pytest.mark.parametrize("name", ["get", "set", "setex", "del", "hgetall", "hincrbyfloat", "expire"])
    def test_known_commands(self, name):
        assert is_redis_command(name) is True

    @pytest.mark.parametrize("name", [
        "", "frobnicate", "_private", "__class__", "connection_pool", "pipeline",
        "scan_iter", "hscan_iter", "register_script", "bitfield",
    ])
    def test_not_commands(self, name):
        assert is_redis_command(name) is False


class TestClientCreation:
    """Test client settings derived from the endpoint."""

    def test_endpoint_applied(self, error_stream):
        client = RedisStoreGateway(error_stream).create_client(ENDPOINT)
        kwargs = client.connection_pool.connection_kwargs

        assert kwargs["host"] == "localhost"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 1
        assert kwargs["password"] == "secret"
        assert kwargs["socket_timeout"] == 2
        assert kwargs["decode_responses"] is True

    def test_params_override_defaults(self, error_stream):
        endpoint = Endpoint("localhost", 6380, params={"decode_responses": False})
        client = RedisStoreGateway(error_stream).create_client(endpoint)
        assert client.connection_pool.connection_kwargs["decode_responses"] is False


@pytest.mark.asyncio
class TestRedisConnection:
    """Test command invocation and release."""

    async def test_invoke(self, error_stream):
        connection = RedisConnection(StubClient(), ENDPOINT, error_stream)
        assert await connection.invoke("get", ("k1",)) == b"42"
        assert await connection.invoke("hset", ("htable", "hkey1", 100)) == 1

    async def test_command_error(self, error_stream):
        published = []
        error_stream.subscribe(published.append)
        connection = RedisConnection(StubClient(ResponseError("WRONGTYPE")), ENDPOINT, error_stream)

        with pytest.raises(StoreError) as exc_info:
            await connection.invoke("get", ("k1",))

        assert isinstance(exc_info.value.__cause__, ResponseError)
        assert published == []

    async def test_wrong_arguments(self, error_stream):
        connection = RedisConnection(StubClient(), ENDPOINT, error_stream)
        with pytest.raises(StoreError):
            await connection.invoke("get", ("k1", "extra"))

    async def test_connection_error_published(self, error_stream):
        published = []
        error_stream.subscribe(published.append)
        connection = RedisConnection(StubClient(RedisConnectionError("refused")), ENDPOINT, error_stream)

        with pytest.raises(StoreError):
            await connection.invoke("get", ("k1",))

        assert len(published) == 1
        assert isinstance(published[0], GatewayConnectionError)
        assert "localhost:6380" in str(published[0])

    async def test_close_is_idempotent(self, error_stream):
        client = StubClient()
        connection = RedisConnection(client, ENDPOINT, error_stream)

        await connection.close()
        await connection.close()

        assert client.close_calls == 1
        assert connection.closed is True

    async def test_connect_releases_on_error(self, error_stream):
        client = StubClient()
        gateway = RedisStoreGateway(error_stream)
        gateway.create_client = lambda endpoint: client

        with pytest.raises(StoreError):
            async with gateway.connect(ENDPOINT) as connection:
                assert connection.supports("get")
                raise StoreError("boom")

        assert client.close_calls == 1

    async def test_connect_with_real_client(self, error_stream):
        gateway = RedisStoreGateway(error_stream, debug=True)

        async with gateway.connect(ENDPOINT) as connection:
            assert connection.endpoint == ENDPOINT
            assert connection.supports("get")

        assert connection.closed is True


class RespServer:
    """Minimal RESP server: GET answers a fixed bulk string, anything else +OK."""

    def __init__(self, value: bytes = b"42"):
        self.value = value
        self.commands = []
        self.server = None

    async def start(self) -> int:
        self.server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
        return self.server.sockets[0].getsockname()[1]

    def stop(self) -> None:
        self.server.close()

    async def read_command(self, reader):
        header = await reader.readline()
        if not header:
            return None
        parts = []
        for _ in range(int(header[1:])):
            length = int((await reader.readline())[1:])
            parts.append((await reader.readexactly(length + 2))[:-2])
        return parts

    async def handle(self, reader, writer):
        try:
            while True:
                parts = await self.read_command(reader)
                if parts is None:
                    break
                command = parts[0].upper()
                self.commands.append(command)
                if command == b"GET":
                    writer.write(b"$%d\r\n%s\r\n" % (len(self.value), self.value))
                else:
                    writer.write(b"+OK\r\n")
                await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()


@pytest.mark.asyncio
class TestReplyDecoding:
    """Test replies from a real client come back as text."""

    async def test_gateway_returns_str(self, error_stream):
        server = RespServer()
        port = await server.start()
        try:
            gateway = RedisStoreGateway(error_stream)
            async with gateway.connect(Endpoint("127.0.0.1", port)) as connection:
                value = await connection.invoke("get", ("k1",))
        finally:
            server.stop()

        assert value == "42"
        assert b"GET" in server.commands

    async def test_end_to_end_get(self):
        server = RespServer()
        port = await server.start()
        try:
            client = MultiRedis({"hosts": {"127.0.0.1": [port]}})
            value = await client.execute("get", ["k1"])
        finally:
            server.stop()

        assert value == "42"
