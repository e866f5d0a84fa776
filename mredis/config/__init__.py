"""Configuration module for mredis."""

from .settings import CacheConfig, Config, Settings, build_config, load_config, settings

__all__ = ["CacheConfig", "Config", "Settings", "build_config", "load_config", "settings"]
