"""
Cluster module for mredis.

This module provides:
- Hosts declaration parsing and validation
- Shard topology (masters and their replicas)
- Key to endpoint routing
"""

from .selector import ShardSelector, crc32, jittered_ttl
from .topology import (
    Endpoint,
    HostEntry,
    PortList,
    PortRange,
    ShardGroup,
    Topology,
    expand_ports,
    parse_ports,
    resolve_topology,
)

__all__ = [
    'Endpoint',
    'HostEntry',
    'PortList',
    'PortRange',
    'ShardGroup',
    'ShardSelector',
    'Topology',
    'crc32',
    'expand_ports',
    'jittered_ttl',
    'parse_ports',
    'resolve_topology',
]
