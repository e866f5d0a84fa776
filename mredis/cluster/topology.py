"""
Cluster Topology Module

Turns the ``hosts`` declaration into an immutable topology of shard groups.

Supported host declarations:

    'localhost': [6380, 6381, 6382]                  # every port is a master
    'localhost': ['6380:6382']                       # same, as a range
    'localhost': {'ports': [6380, 6381], 'pass': 'secret', 'dbname': 1}
    'localhost': {'ports': {6380: ['6381:6382'],     # master -> replicas
                            6390: [6391, 6392]}}

A host with a flat port list gets one shard group per port, and each port
serves its own reads. A host with a port mapping gets one shard group per
master port, in declaration order, reading from its replicas.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..config.settings import Config
from ..errors import ConfigError

MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class PortList:
    """Literal list of ports."""
    ports: Tuple[int, ...]

    def expand(self) -> List[int]:
        return list(self.ports)


@dataclass(frozen=True)
class PortRange:
    """Inclusive port range, always low <= high."""
    low: int
    high: int

    def expand(self) -> List[int]:
        return list(range(self.low, self.high + 1))


PortDeclaration = Union[PortList, PortRange]


@dataclass(frozen=True)
class Endpoint:
    """
    A concrete Redis instance.

    Attributes:
        host: Host name or address
        port: TCP port
        password: AUTH password (None = no auth)
        db: Logical database index selected after connecting
        params: Extra keyword arguments for the Redis client
    """
    host: str
    port: int
    password: Optional[str] = field(default=None, repr=False)
    db: int = 0
    params: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ShardGroup:
    """One master and the replicas that serve its reads."""
    master: Endpoint
    replicas: Tuple[Endpoint, ...]

    def __post_init__(self):
        if not self.replicas:
            raise ConfigError(f"Config error. Shard {self.master.address} has no read endpoints")


@dataclass(frozen=True)
class HostEntry:
    """All shard groups declared under one host key."""
    name: str
    shards: Tuple[ShardGroup, ...]


@dataclass(frozen=True)
class Topology:
    """Ordered host entries; the order defines key placement."""
    entries: Tuple[HostEntry, ...]

    @property
    def hosts(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Config error. Wrong port {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ConfigError(f"Config error. Wrong port {value!r}")
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Config error. Wrong port {value!r}") from None
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigError(f"Config error. Port {port} is out of range")
    return port


def parse_range(text: str) -> PortRange:
    """
    Parse a "low:high" range string.

    Reversed bounds are swapped, so "6382:6381" is the same as "6381:6382".

    Raises:
        ConfigError: If the string is not two integers around one colon
    """
    parts = text.split(":")
    if len(parts) != 2:
        raise ConfigError(f"Config error. Wrong ports range {text!r}")
    low, high = (_parse_port(part) for part in parts)
    if low > high:
        low, high = high, low
    return PortRange(low, high)


def parse_ports(value: Any) -> PortDeclaration:
    """
    Parse a port declaration.

    A single-element list whose element contains a colon is a range; any
    other list is taken as-is. A bare range string or a single port are
    accepted as shorthands.

    Raises:
        ConfigError: If the declaration can't be parsed
    """
    if isinstance(value, str) and ":" in value:
        return parse_range(value)
    if isinstance(value, (int, str)):
        return PortList((_parse_port(value),))
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Config error. Wrong ports declaration {value!r}")
    if len(value) == 1 and ":" in str(value[0]):
        return parse_range(str(value[0]))
    return PortList(tuple(_parse_port(port) for port in value))


def expand_ports(value: Any) -> List[int]:
    """Parse and expand a port declaration into individual ports."""
    return parse_ports(value).expand()


def _is_empty(value: Any) -> bool:
    return isinstance(value, (list, tuple, dict)) and not value


def _check_host_declaration(name: str, declaration: Any) -> None:
    if isinstance(declaration, (list, tuple)):
        if not declaration:
            raise ConfigError(f"Config error. Wrong hosts declaration for {name!r}")
        return
    if isinstance(declaration, Mapping):
        ports = declaration.get("ports")
        if ports is None or _is_empty(ports) or not isinstance(ports, (list, tuple, Mapping)):
            raise ConfigError(f"Config error. Wrong hosts declaration for {name!r}")
        return
    raise ConfigError(f"Config error. Wrong hosts declaration for {name!r}")


def _host_options(config: Config, declaration: Any) -> Dict[str, Any]:
    """Per-host auth/db/params, falling back to the global values."""
    options = declaration if isinstance(declaration, Mapping) else {}

    db = options.get("dbname", config.dbname)
    if not isinstance(db, int) or isinstance(db, bool) or db < 0:
        raise ConfigError(f"Config error. Wrong dbname {db!r}")

    params = options.get("params", config.params)
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise ConfigError("Config error. Host params must be an object")

    return {
        "password": options.get("pass", config.password) or None,
        "db": db,
        "params": dict(params),
    }


def _resolve_host(name: str, declaration: Any, config: Config) -> HostEntry:
    _check_host_declaration(name, declaration)
    options = _host_options(config, declaration)

    def endpoint(port: int) -> Endpoint:
        return Endpoint(host=name, port=port, **options)

    ports = declaration["ports"] if isinstance(declaration, Mapping) else declaration

    shards: List[ShardGroup] = []
    if isinstance(ports, Mapping):
        for master_port, replica_ports in ports.items():
            master = endpoint(_parse_port(master_port))
            if replica_ports is None or _is_empty(replica_ports):
                replicas: Tuple[Endpoint, ...] = (master,)
            else:
                replicas = tuple(endpoint(port) for port in expand_ports(replica_ports))
            shards.append(ShardGroup(master=master, replicas=replicas))
    else:
        for port in expand_ports(ports):
            master = endpoint(port)
            shards.append(ShardGroup(master=master, replicas=(master,)))

    if not shards:
        raise ConfigError(f"Config error. Wrong hosts declaration for {name!r}")
    return HostEntry(name=name, shards=tuple(shards))


def resolve_topology(config: Config) -> Topology:
    """
    Validate the hosts declaration and build the topology.

    Args:
        config: Merged client configuration

    Returns:
        Immutable Topology, one host entry per declared host in order

    Raises:
        ConfigError: On any malformed declaration; no partial topology
    """
    hosts = config.hosts
    if not isinstance(hosts, Mapping) or not hosts:
        raise ConfigError("Config error. Wrong hosts declaration.")

    entries = tuple(
        _resolve_host(str(name), declaration, config)
        for name, declaration in hosts.items()
    )
    return Topology(entries=entries)
