"""
Settings for configdb, loaded from YAML.

Lookup order for the settings file: explicit path, $CONFIGDB_CONFIG,
./config/default_config.yaml, then the file bundled with this package.
A missing file means defaults.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Type, TypeVar

import yaml


DEFAULT_MAX_AGGREGATION_LIMIT = 10000

CONFIG_ENV_VAR = "CONFIGDB_CONFIG"
LOCAL_CONFIG = Path("./config/default_config.yaml")
BUNDLED_CONFIG = Path(__file__).parent / "default_config.yaml"

S = TypeVar("S")


@dataclass
class MongoConfig:
    """Connection to the document store."""
    uri: str = "mongodb://localhost:27017"
    database: str = "config"
    read_preference: Literal[
        "primary", "primaryPreferred", "secondary", "secondaryPreferred", "nearest"
    ] = "primary"
    server_selection_timeout_ms: int = 5000
    app_name: str = "configdb"


@dataclass
class QueryConfig:
    """List pipelines and predefined queries."""
    max_aggregation_limit: int = DEFAULT_MAX_AGGREGATION_LIMIT
    templates_dir: Optional[str] = None  # None = bundled templates


@dataclass
class DeletionConfig:
    """Tenant-wide deletion."""
    max_workers: Optional[int] = None  # None = one worker per collection
    customers_collection: str = "customers"


def _section(section_type: Type[S], name: str, data: Optional[Dict[str, Any]]) -> S:
    data = data or {}
    known = {f.name for f in fields(section_type)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown setting(s) in '{name}': {', '.join(unknown)}")
    return section_type(**data)


@dataclass
class Settings:
    """
    All configdb settings.

    Attributes:
        mongo: Document store connection
        query: Page size cap and templates directory
        deletion: Tenant deletion workers and customers collection
        log_level: Level of the "configdb" logger
    """
    mongo: MongoConfig = field(default_factory=MongoConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    deletion: DeletionConfig = field(default_factory=DeletionConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """
        Build settings from a parsed YAML mapping.

        Raises:
            ValueError: If a section holds a key no setting matches
        """
        data = dict(data)
        sections = {
            "mongo": _section(MongoConfig, "mongo", data.pop("mongo", None)),
            "query": _section(QueryConfig, "query", data.pop("query", None)),
            "deletion": _section(DeletionConfig, "deletion", data.pop("deletion", None)),
        }
        if "log_level" in data:
            sections["log_level"] = str(data.pop("log_level")).upper()
        if data:
            raise ValueError(f"Unknown setting(s): {', '.join(sorted(data))}")
        return cls(**sections)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_default_config_path() -> Path:
    """Settings file used when load_config gets no explicit path."""
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config)
    if LOCAL_CONFIG.exists():
        return LOCAL_CONFIG
    return BUNDLED_CONFIG


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        config_path: Path to the settings file. If None, uses the default
            lookup order.

    Returns:
        Loaded settings (defaults when the file is missing or empty)

    Example:
        >>> settings = load_config()
        >>> store = MongoStore.from_settings(settings)
    """
    path = Path(config_path) if config_path is not None else get_default_config_path()
    if not path.is_file():
        return Settings()

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return Settings.from_dict(data) if data else Settings()
