"""
cs2replay - Constants

Defines engine enums, recording cadence, grenade timings and the string
vocabularies used in the match JSON.
"""

import math
from enum import Enum, StrEnum

# CS2 servers run at 64 tick (subtick timestamps sit between ticks)
CS2_TICK_RATE = 64

# Snapshot cadence. 64 tick / 5 per second = one snapshot every 13 ticks
SNAPSHOTS_PER_SECOND = 5
FALLBACK_SAMPLE_INTERVAL = 13  # Used when the tick rate is not known yet

# Keep recording after round end so the viewer doesn't cut off on the last kill
POST_ROUND_BUFFER_SECONDS = 3.0

# Max trajectory waypoints per grenade. The frontend lerps between points.
MAX_TRAJECTORY_POINTS = 10

# Grenade effect timings (seconds)
SMOKE_DURATION = 18.0
MOLOTOV_MAX_DURATION = 7.0  # Visual burn time is capped even when upgraded
DECOY_DURATION = 15.0

# Flash intensity scale: seconds of remaining blindness that saturate alpha
FLASH_SATURATION_SECONDS = 5.0
FLASH_ALPHA_MAX = 255.0


class Team(int, Enum):
    """CS2 team numbers."""

    UNASSIGNED = 0
    SPECTATOR = 1
    TERRORIST = 2
    CT = 3


class RoundEndReason(int, Enum):
    """
    Round end reasons from CS2.

    These are the official game event values.
    """

    TARGET_BOMBED = 1  # Terrorists bombed the target
    VIP_ESCAPED = 2  # (Legacy)
    VIP_KILLED = 3  # (Legacy)
    TERRORISTS_ESCAPED = 4  # (Legacy)
    CT_STOPPED_ESCAPE = 5  # (Legacy)
    TERRORIST_STOPPED = 6  # (Legacy)
    BOMB_DEFUSED = 7  # CTs defused the bomb
    CT_WIN = 8  # CTs eliminated terrorists
    TERRORIST_WIN = 9  # Terrorists eliminated CTs
    ROUND_DRAW = 10  # Draw
    ALL_HOSTAGES_RESCUED = 11  # CTs rescued hostages
    TARGET_SAVED = 12  # Time ran out, bomb not planted
    HOSTAGES_NOT_RESCUED = 13  # Terrorists won hostage round
    TERRORISTS_SURRENDER = 14  # Terrorists surrendered
    CT_SURRENDER = 15  # CTs surrendered


class WinReason(StrEnum):
    """Normalized round end reasons written to the match JSON."""

    ELIMINATION = "elimination"
    BOMB_DEFUSED = "bomb_defused"
    BOMB_EXPLODED = "bomb_exploded"
    TIME = "time"
    OTHER = "other"


class BombStatus(StrEnum):
    CARRIED = "carried"
    DROPPED = "dropped"
    PLANTED = "planted"
    DEFUSED = "defused"
    EXPLODED = "exploded"


class GrenadeType(StrEnum):
    """Grenade types as they appear in the match JSON."""

    SMOKE = "smoke"
    FLASH = "flash"
    HE = "he"
    MOLOTOV = "molotov"
    INCENDIARY = "incendiary"
    DECOY = "decoy"
    UNKNOWN = "unknown"


FIRE_GRENADES = frozenset({GrenadeType.MOLOTOV, GrenadeType.INCENDIARY})

_REASON_BY_CODE = {
    RoundEndReason.TERRORIST_WIN: WinReason.ELIMINATION,
    RoundEndReason.CT_WIN: WinReason.ELIMINATION,
    RoundEndReason.TERRORIST_STOPPED: WinReason.ELIMINATION,
    RoundEndReason.CT_STOPPED_ESCAPE: WinReason.ELIMINATION,
    RoundEndReason.BOMB_DEFUSED: WinReason.BOMB_DEFUSED,
    RoundEndReason.TARGET_BOMBED: WinReason.BOMB_EXPLODED,
    RoundEndReason.TARGET_SAVED: WinReason.TIME,
}

# Event-table spellings (demoparser2 resolves some reasons to names)
_REASON_BY_NAME = {
    "t_win": WinReason.ELIMINATION,
    "ct_win": WinReason.ELIMINATION,
    "t_killed": WinReason.ELIMINATION,
    "ct_killed": WinReason.ELIMINATION,
    "terrorists_win": WinReason.ELIMINATION,
    "cts_win": WinReason.ELIMINATION,
    "terrorist_stopped": WinReason.ELIMINATION,
    "ct_stopped_escape": WinReason.ELIMINATION,
    "bomb_defused": WinReason.BOMB_DEFUSED,
    "target_bombed": WinReason.BOMB_EXPLODED,
    "bomb_exploded": WinReason.BOMB_EXPLODED,
    "target_saved": WinReason.TIME,
    "time_ran_out": WinReason.TIME,
}

_GRENADE_BY_NAME = {
    "smoke": GrenadeType.SMOKE,
    "smokegrenade": GrenadeType.SMOKE,
    "smoke grenade": GrenadeType.SMOKE,
    "flash": GrenadeType.FLASH,
    "flashbang": GrenadeType.FLASH,
    "he": GrenadeType.HE,
    "hegrenade": GrenadeType.HE,
    "he grenade": GrenadeType.HE,
    "molotov": GrenadeType.MOLOTOV,
    "incendiary": GrenadeType.INCENDIARY,
    "incgrenade": GrenadeType.INCENDIARY,
    "incendiary grenade": GrenadeType.INCENDIARY,
    "decoy": GrenadeType.DECOY,
    "decoy grenade": GrenadeType.DECOY,
}


def team_to_string(team) -> str:
    """Map an engine team value (number or name) to "ct", "t" or ""."""
    if team is None:
        return ""
    if isinstance(team, str):
        value = team.strip().lower()
        if value in ("ct", "counterterrorist", "counter-terrorist", "counter_terrorist", "3"):
            return "ct"
        if value in ("t", "terrorist", "terrorists", "2"):
            return "t"
        return ""
    if isinstance(team, float) and math.isnan(team):
        return ""
    try:
        number = int(team)
    except (TypeError, ValueError):
        return ""
    if number == Team.CT:
        return "ct"
    if number == Team.TERRORIST:
        return "t"
    return ""


def normalize_win_reason(reason) -> str:
    """Collapse an engine round end reason into the five JSON categories."""
    if reason is None:
        return WinReason.OTHER.value
    if isinstance(reason, str):
        key = reason.strip().lower()
        if key.isdigit():
            return normalize_win_reason(int(key))
        return _REASON_BY_NAME.get(key, WinReason.OTHER).value
    try:
        code = RoundEndReason(int(reason))
    except (TypeError, ValueError):
        return WinReason.OTHER.value
    return _REASON_BY_CODE.get(code, WinReason.OTHER).value


def grenade_type_from_name(name: str | None) -> str:
    """Resolve an equipment or projectile name to a grenade type string."""
    if not name:
        return GrenadeType.UNKNOWN.value
    key = name.strip().lower().removeprefix("weapon_").removesuffix("projectile").rstrip("_")
    if key not in _GRENADE_BY_NAME and key.startswith("c"):
        # Entity class names, e.g. CSmokeGrenadeProjectile
        key = key[1:]
    return _GRENADE_BY_NAME.get(key, GrenadeType.UNKNOWN).value
