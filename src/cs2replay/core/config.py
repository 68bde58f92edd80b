"""
Configuration Management for cs2replay

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables
- Command line arguments

Configuration precedence (highest to lowest):
1. Command line arguments
2. Environment variables (CS2REPLAY_*)
3. Configuration file
4. Default values
"""

import json
import logging
import logging.handlers
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cs2replay.core.constants import (
    DECOY_DURATION,
    FALLBACK_SAMPLE_INTERVAL,
    MAX_TRAJECTORY_POINTS,
    MOLOTOV_MAX_DURATION,
    POST_ROUND_BUFFER_SECONDS,
    SMOKE_DURATION,
    SNAPSHOTS_PER_SECOND,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class CollectorConfig:
    """Configuration for the round collector and grenade correlator."""

    snapshots_per_second: int = SNAPSHOTS_PER_SECOND
    post_round_buffer_seconds: float = POST_ROUND_BUFFER_SECONDS
    fallback_sample_interval: int = FALLBACK_SAMPLE_INTERVAL
    max_trajectory_points: int = MAX_TRAJECTORY_POINTS

    smoke_duration: float = SMOKE_DURATION
    molotov_max_duration: float = MOLOTOV_MAX_DURATION
    decoy_duration: float = DECOY_DURATION

    # Upper bound for position-only grenade matching, in game units.
    # None keeps the nearest candidate however far away it is.
    max_match_distance: float | None = None


@dataclass
class ParserConfig:
    """Configuration for the demoparser2 event source."""

    tick_fields: list[str] = field(
        default_factory=lambda: [
            "X",
            "Y",
            "Z",
            "yaw",
            "health",
            "armor_value",
            "is_alive",
            "team_num",
            "active_weapon_name",
            "has_defuser",
            "flash_duration",
        ]
    )
    # Feed every Nth tick to the collector (1 = native rate)
    tick_stride: int = 1


@dataclass
class ExportConfig:
    """Configuration for match JSON export."""

    output_dir: str = "./data/matches"
    pretty: bool = False
    compress: bool = False


@dataclass
class JobConfig:
    """Configuration for background parse jobs."""

    match_dir: str = "./data/matches"
    delete_demo_after_parse: bool = True
    id_bytes: int = 2


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class Cs2ReplayConfig:
    """Main configuration container."""

    collector: CollectorConfig = field(default_factory=CollectorConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    jobs: JobConfig = field(default_factory=JobConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


_SECTIONS = ("collector", "parser", "export", "jobs", "logging")


# ============================================================================
# Configuration Loading
# ============================================================================


def get_default_config_paths() -> list[Path]:
    """Get the default paths to search for configuration files."""
    paths = []

    # Current directory
    paths.append(Path.cwd() / "cs2replay.yaml")
    paths.append(Path.cwd() / "cs2replay.toml")
    paths.append(Path.cwd() / "cs2replay.json")

    # User home directory
    home = Path.home()
    xdg_config = os.environ.get("XDG_CONFIG_HOME", str(home / ".config"))
    paths.append(Path(xdg_config) / "cs2replay" / "config.yaml")
    paths.append(Path(xdg_config) / "cs2replay" / "config.toml")

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path) as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a file, detecting format from extension."""
    if not path.exists():
        return {}

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return load_yaml_config(path)
    elif suffix == ".toml":
        return load_toml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        logger.warning(f"Unknown config file format: {suffix}")
        return {}


def _convert_env_value(value: str) -> Any:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.lower() in ("none", "null"):
        return None
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        "CS2REPLAY_LOG_LEVEL": ("logging", "level"),
        "CS2REPLAY_LOG_FILE": ("logging", "file"),
        "CS2REPLAY_SNAPSHOTS_PER_SECOND": ("collector", "snapshots_per_second"),
        "CS2REPLAY_POST_ROUND_BUFFER": ("collector", "post_round_buffer_seconds"),
        "CS2REPLAY_MAX_MATCH_DISTANCE": ("collector", "max_match_distance"),
        "CS2REPLAY_TICK_STRIDE": ("parser", "tick_stride"),
        "CS2REPLAY_OUTPUT_DIR": ("export", "output_dir"),
        "CS2REPLAY_COMPRESS": ("export", "compress"),
        "CS2REPLAY_MATCH_DIR": ("jobs", "match_dir"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            config.setdefault(section, {})[key] = _convert_env_value(value)

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def dict_to_config(data: dict[str, Any]) -> Cs2ReplayConfig:
    """Convert a dictionary to Cs2ReplayConfig, ignoring unknown keys."""
    config = Cs2ReplayConfig()

    for section in _SECTIONS:
        values = data.get(section)
        if not isinstance(values, dict):
            continue
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.debug(f"Ignoring unknown config key: {section}.{key}")

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> Cs2ReplayConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file (optional)
        include_env: Whether to include environment variables

    Returns:
        Merged Cs2ReplayConfig
    """
    config_data: dict[str, Any] = {}

    if config_file:
        config_data = load_config_file(config_file)
        logger.info(f"Loaded config from: {config_file}")
    else:
        for path in get_default_config_paths():
            if path.exists():
                config_data = load_config_file(path)
                logger.info(f"Loaded config from: {path}")
                break

    if include_env:
        config_data = merge_configs(config_data, load_env_config())

    return dict_to_config(config_data)


# ============================================================================
# Configuration Saving
# ============================================================================


def config_to_dict(config: Cs2ReplayConfig) -> dict[str, Any]:
    """Convert Cs2ReplayConfig to a dictionary."""
    return asdict(config)


def save_config(config: Cs2ReplayConfig, path: Path) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration to save
        path: Path to save to (format detected from extension)
    """
    data = config_to_dict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    elif suffix == ".json":
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    else:
        raise ValueError(f"Unknown config format: {suffix}")

    logger.info(f"Saved config to: {path}")


# ============================================================================
# Logging Setup
# ============================================================================


def setup_logging(config: LoggingConfig) -> None:
    """Configure the root logger from a LoggingConfig."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
            )
        )

    logging.basicConfig(
        level=getattr(logging, str(config.level).upper(), logging.INFO),
        format=config.format,
        handlers=handlers,
        force=True,
    )


# ============================================================================
# Global Configuration
# ============================================================================

_global_config: Cs2ReplayConfig | None = None


def get_config() -> Cs2ReplayConfig:
    """Get the global configuration, loading it if necessary."""
    global _global_config

    if _global_config is None:
        _global_config = load_config()

    return _global_config


def set_config(config: Cs2ReplayConfig) -> None:
    """Set the global configuration."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration to defaults."""
    global _global_config
    _global_config = None
