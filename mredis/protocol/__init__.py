"""Protocol module for mredis."""

from .commands import (
    CACHEABLE_COMMANDS,
    WRITE_COMMANDS,
    Invocation,
    cache_key_for,
    is_cacheable_command,
    is_write_command,
)
from .parser import CommandLineParser

__all__ = [
    "CACHEABLE_COMMANDS",
    "WRITE_COMMANDS",
    "Invocation",
    "cache_key_for",
    "is_cacheable_command",
    "is_write_command",
    "CommandLineParser",
]
