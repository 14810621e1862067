"""Application configuration helpers."""

from __future__ import annotations

from catalogsync.common.logging import configure_logging

from .env import positive_int_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config
from .waypoint import WaypointConfig, get_waypoint_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "WaypointConfig",
    "configure_logging",
    "get_database_config",
    "get_storage_config",
    "get_sync_config",
    "get_waypoint_config",
    "positive_int_env",
    "require_env_vars",
]
