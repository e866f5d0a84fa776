"""
Command Classification and Invocation

Static command sets deciding where a command is routed and whether its
result goes through the cache layer.
"""

from dataclasses import dataclass, field
from typing import Any, Tuple


# Commands that must run on the master of a shard
WRITE_COMMANDS = frozenset({
    "set", "setex", "del", "expire",
    "decr", "incr", "incrby", "decrby", "incrbyfloat",
    "hset", "hincrby", "hincrbyfloat",
})

# Read commands whose results are cached
CACHEABLE_COMMANDS = frozenset({"get"})


def normalize(command: str) -> str:
    return command.strip().lower()


def is_write_command(command: str) -> bool:
    return normalize(command) in WRITE_COMMANDS


def is_cacheable_command(command: str) -> bool:
    return normalize(command) in CACHEABLE_COMMANDS


def cache_key_for(command: str, args: Tuple[Any, ...]) -> str:
    """Cache key for a cacheable command. Every command currently uses its first argument."""
    return str(args[0])


@dataclass
class Invocation:
    """
    One call to the client.

    Attributes:
        command: Normalized command name
        args: Command arguments, args[0] is the routing key
        number: Value of the client's call counter for this call
        cache_consulted: Set once the cache lookup has run
    """
    command: str
    args: Tuple[Any, ...] = field(default_factory=tuple)
    number: int = 0
    cache_consulted: bool = False

    def __post_init__(self):
        self.command = normalize(self.command)
        self.args = tuple(self.args)

    @property
    def key(self) -> str:
        return str(self.args[0]) if self.args else ""

    @property
    def is_write(self) -> bool:
        return self.command in WRITE_COMMANDS

    @property
    def is_cacheable(self) -> bool:
        return self.command in CACHEABLE_COMMANDS
