"""
Configuration module for configdb.

This module provides configuration management including
loading settings from YAML files and environment variables.

Example:
    >>> from config import Settings, load_config
    >>>
    >>> # Load default config
    >>> settings = load_config()
    >>>
    >>> # Access settings
    >>> print(settings.mongo.database)
    >>> print(settings.query.max_aggregation_limit)
"""

from .settings import (
    Settings,
    MongoConfig,
    QueryConfig,
    DeletionConfig,
    DEFAULT_MAX_AGGREGATION_LIMIT,
    load_config,
    get_default_config_path,
)

__all__ = [
    "Settings",
    "MongoConfig",
    "QueryConfig",
    "DeletionConfig",
    "DEFAULT_MAX_AGGREGATION_LIMIT",
    "load_config",
    "get_default_config_path",
]
