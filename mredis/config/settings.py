"""
mredis Configuration Settings

Environment-driven process settings plus the merge of user configuration
over the built-in defaults.

Configuration shape (all keys optional):

    {
        "debug": false,
        "hosts": {"localhost": {"ports": {"6380": ["6381:6382"]}}},
        "dbname": 0,
        "params": {},
        "pass": null,
        "memcached": {
            "enable": false,
            "backend": "memcached",
            "expireInterval": [1, 3],
            "host": "localhost",
            "port": 11211,
            "params": {}
        }
    }
"""

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..errors import ConfigError


@dataclass
class Settings:
    """Process-wide settings read from the environment."""

    # Logging settings
    DEBUG: bool = os.environ.get("MREDIS_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("MREDIS_LOG_LEVEL", "INFO")

    # Default config file for the command line driver
    CONFIG_PATH: str = os.environ.get("MREDIS_CONFIG", "")

    # Capacity of the in-process cache gateway
    CACHE_MAX_KEYS: int = int(os.environ.get("MREDIS_CACHE_MAX_KEYS", "10000"))


# Global settings instance
settings = Settings()


# Cache servers the memcached block can point at
CACHE_BACKENDS = ("memcached", "redis", "local")

DEFAULT_CACHE_CONFIG: Dict[str, Any] = {
    "enable": False,
    "backend": "memcached",
    "expireInterval": [1, 3],
    "host": "localhost",
    "port": 11211,
    "params": {},
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "debug": settings.DEBUG,
    "hosts": {"localhost": [6379]},
    "dbname": 0,
    "params": {},
    "pass": None,
    "memcached": DEFAULT_CACHE_CONFIG,
}


@dataclass(frozen=True)
class CacheConfig:
    """Cache layer settings (the ``memcached`` block)."""

    enable: bool = False
    backend: str = "memcached"
    expire_interval: Tuple[int, int] = (1, 3)
    host: str = "localhost"
    port: int = 11211
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def server(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Config:
    """
    Merged client configuration.

    Attributes:
        debug: Emit routing/cache trace messages
        hosts: Raw hosts declaration, resolved by the topology module
        dbname: Default logical database index
        params: Default Redis client keyword arguments
        password: Default Redis password (``pass`` key)
        memcached: Cache layer settings
    """

    debug: bool
    hosts: Mapping[str, Any]
    dbname: int = 0
    params: Dict[str, Any] = field(default_factory=dict)
    password: Optional[str] = None
    memcached: CacheConfig = field(default_factory=CacheConfig)


def _merge(defaults: Mapping[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
    """Shallow merge: a present user key wins, an absent key takes the default."""
    merged = {key: copy.deepcopy(value) for key, value in defaults.items()}
    for key, value in user.items():
        merged[key] = copy.deepcopy(value)
    return merged


def _parse_expire_interval(value: Any) -> Tuple[int, int]:
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) for v in value)
    ):
        raise ConfigError(f"Config error. expireInterval must be [min, max], got {value!r}")
    low, high = value
    if low < 0 or high < 0:
        raise ConfigError(f"Config error. expireInterval must be non-negative, got {value!r}")
    if low > high:
        low, high = high, low
    return low, high


def _parse_cache_config(block: Any) -> CacheConfig:
    if not isinstance(block, Mapping):
        raise ConfigError(f"Config error. memcached must be an object, got {block!r}")

    merged = _merge(DEFAULT_CACHE_CONFIG, block)
    params = merged["params"] if merged["params"] is not None else {}
    if not isinstance(params, Mapping):
        raise ConfigError("Config error. memcached.params must be an object")

    backend = merged["backend"]
    if backend not in CACHE_BACKENDS:
        raise ConfigError(
            f"Config error. memcached.backend must be one of {', '.join(CACHE_BACKENDS)}, got {backend!r}"
        )

    try:
        port = int(merged["port"])
    except (TypeError, ValueError):
        raise ConfigError(f"Config error. Wrong memcached port {merged['port']!r}") from None

    return CacheConfig(
        enable=bool(merged["enable"]),
        backend=backend,
        expire_interval=_parse_expire_interval(merged["expireInterval"]),
        host=str(merged["host"]),
        port=port,
        params=dict(params),
    )


def build_config(user: Optional[Mapping[str, Any]] = None) -> Config:
    """
    Merge user configuration over the defaults.

    Only the ``memcached`` block is merged one level deep; every other key
    is taken verbatim from the user when present. The user mapping is not
    modified.

    Args:
        user: Partial configuration (may be None)

    Returns:
        Frozen Config

    Raises:
        ConfigError: If a value has the wrong shape
    """
    if user is None:
        user = {}
    if not isinstance(user, Mapping):
        raise ConfigError(f"Config error. Expected an object, got {type(user).__name__}")

    merged = _merge(DEFAULT_CONFIG, user)

    dbname = merged["dbname"]
    if not isinstance(dbname, int) or isinstance(dbname, bool) or dbname < 0:
        raise ConfigError(f"Config error. Wrong dbname {dbname!r}")

    params = merged["params"] if merged["params"] is not None else {}
    if not isinstance(params, Mapping):
        raise ConfigError("Config error. params must be an object")

    return Config(
        debug=bool(merged["debug"]),
        hosts=merged["hosts"],
        dbname=dbname,
        params=dict(params),
        password=merged["pass"] or None,
        memcached=_parse_cache_config(merged["memcached"]),
    )


def load_config(path: str) -> Config:
    """Read a JSON configuration file and merge it over the defaults."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Config error. Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config error. {path} is not valid JSON: {e}") from e
    return build_config(raw)
