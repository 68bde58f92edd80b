"""
cs2replay Core - Foundation modules shared by the collector and its drivers.

- constants: Engine enums, recording cadence and grenade timings
- config: Application configuration management
"""

from cs2replay.core.config import (
    CollectorConfig,
    Cs2ReplayConfig,
    ExportConfig,
    JobConfig,
    LoggingConfig,
    ParserConfig,
    get_config,
    load_config,
    setup_logging,
)
from cs2replay.core.constants import (
    CS2_TICK_RATE,
    BombStatus,
    GrenadeType,
    RoundEndReason,
    Team,
    WinReason,
    grenade_type_from_name,
    normalize_win_reason,
    team_to_string,
)

__all__ = [
    "CS2_TICK_RATE",
    "BombStatus",
    "CollectorConfig",
    "Cs2ReplayConfig",
    "ExportConfig",
    "GrenadeType",
    "JobConfig",
    "LoggingConfig",
    "ParserConfig",
    "RoundEndReason",
    "Team",
    "WinReason",
    "get_config",
    "grenade_type_from_name",
    "load_config",
    "normalize_win_reason",
    "setup_logging",
    "team_to_string",
]
