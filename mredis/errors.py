"""
Error types raised by mredis.

ConfigError is fatal at construction time. The remaining errors are
reported for a single invocation, except GatewayConnectionError which is
published on the client's error stream.
"""

from typing import Any


class MRedisError(Exception):
    """Base class for all mredis errors."""


class ConfigError(MRedisError):
    """Malformed configuration or hosts declaration."""


class UnsupportedCommandError(MRedisError):
    """The Redis client has no method for the requested command."""

    def __init__(self, command: str):
        super().__init__(f"Redis doesn't have method {command}")
        self.command = command


class StoreError(MRedisError):
    """Primary store failure (network, protocol or command level)."""


class CacheError(MRedisError):
    """
    Cache layer failure.

    When raised from the write-back step, ``value`` holds the primary
    store result, which is still valid data.
    """

    def __init__(self, message: str, value: Any = None):
        super().__init__(message)
        self.value = value


class GatewayConnectionError(MRedisError):
    """Connection-level failure reported outside of any invocation."""
