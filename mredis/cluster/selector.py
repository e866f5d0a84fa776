"""
Shard Selector Module

Maps (key, command) to the Redis endpoint that should serve it.

Placement uses a plain modulo over the CRC-32 of the key, not consistent
hashing: changing the number of hosts moves almost every key.
"""

import logging
import random
import zlib
from typing import Optional, Sequence

from ..errors import ConfigError
from ..protocol.commands import is_write_command
from .topology import Endpoint, HostEntry, ShardGroup, Topology

logger = logging.getLogger(__name__)


def crc32(key: str) -> int:
    """Unsigned CRC-32 of the UTF-8 encoded key."""
    return zlib.crc32(str(key).encode("utf-8")) & 0xFFFFFFFF


def jittered_ttl(bounds: Sequence[int], rng: Optional[random.Random] = None) -> int:
    """Pick an expiry uniformly from the inclusive [min, max] bounds."""
    low, high = bounds
    return (rng or random).randint(low, high)


class ShardSelector:
    """
    Stateless router over a resolved topology.

    Writes always go to the shard's master. Reads pick one of the shard's
    replicas at random, so two reads of the same key may hit different
    replicas.
    """

    def __init__(self, topology: Topology, rng: Optional[random.Random] = None, debug: bool = False):
        """
        Initialize the selector.

        Args:
            topology: Resolved topology
            rng: Random source for replica choice
            debug: Log every routing decision

        Raises:
            ConfigError: If the topology has no hosts
        """
        if len(topology) == 0:
            raise ConfigError("Config error. Topology has no hosts")
        self.topology = topology
        self.rng = rng or random.Random()
        self.debug = debug

    def group_index(self, key: str) -> int:
        """Index of the host entry owning the key, in [0, number of hosts)."""
        return crc32(key) % len(self.topology)

    def host_for(self, key: str) -> HostEntry:
        return self.topology.entries[self.group_index(key)]

    def shard_for(self, key: str) -> ShardGroup:
        """Shard group owning the key inside its host entry."""
        entry = self.host_for(key)
        return entry.shards[crc32(key) % len(entry.shards)]

    def select(self, key: str, command: str) -> Endpoint:
        """
        Pick the endpoint for a command on a key.

        Args:
            key: Routing key (first command argument)
            command: Command name

        Returns:
            The master for write commands, a replica otherwise
        """
        shard = self.shard_for(key)
        if is_write_command(command):
            endpoint = shard.master
        elif len(shard.replicas) == 1:
            endpoint = shard.replicas[0]
        else:
            endpoint = self.rng.choice(shard.replicas)

        if self.debug:
            logger.debug(f"'{command}' {key} => {endpoint.address}")
        return endpoint
