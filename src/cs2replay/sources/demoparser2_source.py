"""
demoparser2 event source.

demoparser2 decodes a CS2 demo into tables (one DataFrame per game event,
one for per-tick player props, one for grenade projectile positions). This
module replays those tables as the ordered (event, state) stream the round
collector consumes:

- header map name -> ServerInfo
- game event tables -> round/kill/bomb/smoke/inferno/decoy events
- grenade table -> GrenadeThrown at an entity's first row, GrenadeDestroyed
  at its last, and the projectile positions of the live state
- tick table -> participants of the live state and one FrameDone per tick,
  delivered after that tick's events

Bomb carrier and ground position, and remaining flash time, are not props of
their own in demoparser2 and are tracked here from the event and tick data.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

from cs2replay.core.config import ParserConfig
from cs2replay.core.constants import CS2_TICK_RATE, GrenadeType, grenade_type_from_name, team_to_string
from cs2replay.errors import DemoParseError, UnexpectedEndOfDemo
from cs2replay.events import (
    BombDefused,
    BombDropped,
    BombExploded,
    BombInfo,
    BombPickup,
    BombPlanted,
    DecoyStart,
    FrameDone,
    FreezeTimeEnd,
    GameState,
    GrenadeDestroyed,
    GrenadeThrown,
    InfernoExpired,
    InfernoStart,
    Kill,
    Participant,
    Projectile,
    RoundEnd,
    RoundStart,
    ServerInfo,
    SmokeExpired,
    SmokeStart,
)

if TYPE_CHECKING:
    from demoparser2 import DemoParser as Demoparser2

logger = logging.getLogger(__name__)

# Game events read from the demo, in the order they are delivered when
# several fire on the same tick
GAME_EVENTS = [
    "round_end",
    "round_start",
    "round_freeze_end",
    "player_death",
    "bomb_pickup",
    "bomb_dropped",
    "bomb_planted",
    "bomb_defused",
    "bomb_exploded",
    "smokegrenade_detonate",
    "smokegrenade_expired",
    "inferno_startburn",
    "inferno_expire",
    "decoy_started",
]

# Player props attached to event rows (prefixed attacker_/user_ by demoparser2)
EVENT_PLAYER_PROPS = ["X", "Y", "Z", "team_num"]

# Ordering of synthetic grenade events against the game events of the same
# tick. Throws come first, then impact destroys so a molotov is
# committed at its landing point before its ignition event arrives.
# A smoke projectile lives on until the cloud dissipates, so its destroy sorts
# after the cloud events.
_THROWN_PRIORITY = -2
_IMPACT_DESTROYED_PRIORITY = -1
_SMOKE_DESTROYED_PRIORITY = len(GAME_EVENTS)

_END_OF_DEMO_MARKERS = ("demoendsearly", "ends early", "unexpected end")


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert a value to int."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert a value to float."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return float(value)
    except (ValueError, TypeError):
        return default


def safe_bool(value: Any, default: bool = False) -> bool:
    """Safely convert a value to bool."""
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
        return bool(value)
    except (ValueError, TypeError):
        return default


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert a value to string."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    return str(value)


def find_column(df: pd.DataFrame, options: list[str]) -> str | None:
    """Find first matching column from options."""
    for col in options:
        if col in df.columns:
            return col
    return None


def translate_error(exc: Exception) -> DemoParseError:
    """Map a demoparser2 failure to the cs2replay error hierarchy."""
    message = str(exc)
    if any(marker in message.lower() for marker in _END_OF_DEMO_MARKERS):
        return UnexpectedEndOfDemo(message)
    return DemoParseError(f"parsing demo: {message}")


@dataclass
class _QueuedEvent:
    tick: int
    priority: int
    seq: int
    name: str
    row: dict


class _FlashTracker:
    """Derives remaining blind time from the per-tick flash_duration prop."""

    def __init__(self, tick_rate: float):
        self.tick_rate = tick_rate
        self._active: dict[int, tuple[float, int]] = {}  # steamid -> (duration, start tick)

    def remaining(self, steam_id: int, duration: float, tick: int) -> float:
        if duration <= 0:
            self._active.pop(steam_id, None)
            return 0.0
        current = self._active.get(steam_id)
        if current is None or current[0] != duration:
            current = (duration, tick)
            self._active[steam_id] = current
        return max(0.0, duration - (tick - current[1]) / self.tick_rate)


class Demoparser2Source:
    """
    Event source backed by demoparser2.

    Usage:
        source = Demoparser2Source("match.dem")
        for event, state in source.events():
            collector.dispatch(event, state)
    """

    def __init__(
        self,
        demo_path: str | Path,
        config: ParserConfig | None = None,
        parser: Demoparser2 | None = None,
    ):
        """
        Args:
            demo_path: Path to the .dem file
            config: Parser settings (tick props, tick stride)
            parser: Pre-built demoparser2 parser, mainly for tests
        """
        self.demo_path = Path(demo_path)
        self.config = config or ParserConfig()
        self.tick_rate = float(CS2_TICK_RATE)
        self._parser = parser

        # Bomb tracking, updated while events are replayed
        self._bomb_carrier = 0
        self._bomb_pos = (0.0, 0.0, 0.0)

        # First end-of-demo error hit while decoding tables
        self._truncated: UnexpectedEndOfDemo | None = None

    def _get_parser(self) -> Demoparser2:
        if self._parser is None:
            from demoparser2 import DemoParser as Demoparser2

            self._parser = Demoparser2(str(self.demo_path))
        return self._parser

    # ------------------------------------------------------------------
    # Table loading
    # ------------------------------------------------------------------

    def _read_table(self, label: str, read, *args, **kwargs):
        """
        Decode one demoparser2 table.

        A truncated demo only loses the table that hit the end of the stream;
        the error is kept and raised once the decoded tables have been
        replayed. Any other failure is raised immediately.
        """
        try:
            return read(*args, **kwargs)
        except Exception as e:
            error = translate_error(e)
            if not isinstance(error, UnexpectedEndOfDemo):
                raise error from e
            logger.warning(f"Demo {self.demo_path} ended early while reading {label}: {e}")
            if self._truncated is None:
                error.__cause__ = e
                self._truncated = error
            return None

    def _load_tables(self) -> tuple[str, list[_QueuedEvent], pd.DataFrame, dict]:
        self._truncated = None
        try:
            parser = self._get_parser()
        except Exception as e:
            raise translate_error(e) from e

        header = self._read_table("header", parser.parse_header) or {}
        raw_events = self._read_table("events", parser.parse_events, GAME_EVENTS, player=EVENT_PLAYER_PROPS)
        grenades_df = self._read_table("grenades", parser.parse_grenades)
        ticks_df = self._read_table("ticks", parser.parse_ticks, self.config.tick_fields)

        map_name = safe_str(header.get("map_name"), "unknown") if isinstance(header, dict) else "unknown"
        logger.info(f"Parsing demo: {self.demo_path} (map: {map_name})")

        queue: list[_QueuedEvent] = []
        seq = 0
        for event_name, df in raw_events or []:
            if event_name not in GAME_EVENTS or df is None or df.empty:
                continue
            priority = GAME_EVENTS.index(event_name)
            for row in df.to_dict("records"):
                queue.append(_QueuedEvent(safe_int(row.get("tick")), priority, seq, event_name, row))
                seq += 1
            logger.debug(f"Loaded {len(df)} {event_name} events")

        projectiles_by_tick = self._index_grenades(grenades_df, queue, seq)
        queue.sort(key=lambda e: (e.tick, e.priority, e.seq))

        if ticks_df is None:
            ticks_df = pd.DataFrame()
        if not ticks_df.empty and self.config.tick_stride > 1:
            ticks_df = ticks_df[ticks_df["tick"] % self.config.tick_stride == 0]

        logger.info(
            f"Loaded {len(queue)} events, {len(ticks_df)} tick rows, "
            f"{sum(len(v) for v in projectiles_by_tick.values())} grenade positions"
        )
        return map_name, queue, ticks_df, projectiles_by_tick

    def _index_grenades(
        self, grenades_df: pd.DataFrame | None, queue: list[_QueuedEvent], seq: int
    ) -> dict[int, tuple[Projectile, ...]]:
        """Group projectile rows by tick and queue throw/destroy events per entity."""
        by_tick: dict[int, list[Projectile]] = defaultdict(list)
        if grenades_df is None or grenades_df.empty:
            return {}

        id_col = find_column(grenades_df, ["grenade_entity_id", "entity_id", "entityid"])
        type_col = find_column(grenades_df, ["grenade_type", "grenade_name"])
        thrower_col = find_column(grenades_df, ["thrower_steamid", "steamid", "user_steamid"])
        x_col = find_column(grenades_df, ["x", "X"])
        y_col = find_column(grenades_df, ["y", "Y"])
        z_col = find_column(grenades_df, ["z", "Z"])
        if id_col is None or x_col is None or y_col is None:
            logger.warning(f"Grenade table missing columns: {list(grenades_df.columns)}")
            return {}

        df = grenades_df.dropna(subset=[x_col, y_col]).sort_values("tick", kind="stable")
        first_seen: dict[int, Projectile] = {}
        last_seen: dict[int, tuple[int, Projectile]] = {}
        for row in df.to_dict("records"):
            tick = safe_int(row.get("tick"))
            proj = Projectile(
                entity_id=safe_int(row.get(id_col)),
                grenade_type=grenade_type_from_name(safe_str(row.get(type_col)) if type_col else ""),
                thrower=safe_int(row.get(thrower_col)) if thrower_col else 0,
                x=safe_float(row.get(x_col)),
                y=safe_float(row.get(y_col)),
                z=safe_float(row.get(z_col)) if z_col else 0.0,
            )
            by_tick[tick].append(proj)
            if proj.entity_id not in first_seen:
                first_seen[proj.entity_id] = proj
                queue.append(_QueuedEvent(tick, _THROWN_PRIORITY, seq, "grenade_thrown", {"projectile": proj}))
                seq += 1
            last_seen[proj.entity_id] = (tick, proj)

        for tick, proj in last_seen.values():
            if proj.grenade_type == GrenadeType.SMOKE:
                priority = _SMOKE_DESTROYED_PRIORITY
            else:
                priority = _IMPACT_DESTROYED_PRIORITY
            queue.append(_QueuedEvent(tick, priority, seq, "grenade_destroyed", {"projectile": proj}))
            seq += 1

        return {tick: tuple(projs) for tick, projs in by_tick.items()}

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def events(self) -> Iterator[tuple[Any, GameState]]:
        map_name, queue, ticks_df, projectiles_by_tick = self._load_tables()
        flash = _FlashTracker(self.tick_rate)

        last_tick = queue[-1].tick if queue else 0
        if not ticks_df.empty:
            last_tick = max(last_tick, int(ticks_df["tick"].max()))
        participants: tuple[Participant, ...] = ()

        yield ServerInfo(map_name=map_name), self._state(0, participants, projectiles_by_tick, last_tick)

        frames = ticks_df.groupby("tick", sort=True) if not ticks_df.empty else ()
        i = 0
        for frame_tick, group in frames:
            frame_tick = int(frame_tick)
            while i < len(queue) and queue[i].tick < frame_tick:
                yield from self._deliver(queue[i], participants, projectiles_by_tick, last_tick)
                i += 1

            participants = self._participants(group, frame_tick, flash)
            while i < len(queue) and queue[i].tick == frame_tick:
                yield from self._deliver(queue[i], participants, projectiles_by_tick, last_tick)
                i += 1

            yield FrameDone(), self._state(frame_tick, participants, projectiles_by_tick, last_tick)

        while i < len(queue):
            yield from self._deliver(queue[i], participants, projectiles_by_tick, last_tick)
            i += 1

        if self._truncated is not None:
            raise self._truncated

    def _state(
        self,
        tick: int,
        participants: tuple[Participant, ...],
        projectiles_by_tick: dict[int, tuple[Projectile, ...]],
        last_tick: int,
    ) -> GameState:
        carrier = None
        if self._bomb_carrier:
            carrier = next((p for p in participants if p.steam_id == self._bomb_carrier), None)
        x, y, z = self._bomb_pos
        return GameState(
            tick=tick,
            tick_rate=self.tick_rate,
            current_time=tick / self.tick_rate,
            participants=participants,
            bomb=BombInfo(carrier=carrier, x=x, y=y, z=z),
            projectiles=projectiles_by_tick.get(tick, ()),
            progress=min(tick / last_tick, 1.0) if last_tick > 0 else 0.0,
        )

    def _participants(self, group: pd.DataFrame, tick: int, flash: _FlashTracker) -> tuple[Participant, ...]:
        players = []
        for row in group.to_dict("records"):
            team = team_to_string(row.get("team_num"))
            if not team:
                continue  # Spectators and unassigned slots are not playing
            steam_id = safe_int(row.get("steamid"))
            players.append(
                Participant(
                    steam_id=steam_id,
                    name=safe_str(row.get("name")),
                    team=team,
                    x=safe_float(row.get("X")),
                    y=safe_float(row.get("Y")),
                    z=safe_float(row.get("Z")),
                    yaw=safe_float(row.get("yaw")),
                    health=safe_int(row.get("health")),
                    armor=safe_int(row.get("armor_value")),
                    is_alive=safe_bool(row.get("is_alive")),
                    active_weapon=safe_str(row.get("active_weapon_name")),
                    has_defuser=safe_bool(row.get("has_defuser")),
                    flash_remaining=flash.remaining(steam_id, safe_float(row.get("flash_duration")), tick),
                )
            )
        return tuple(players)

    def _deliver(
        self,
        queued: _QueuedEvent,
        participants: tuple[Participant, ...],
        projectiles_by_tick: dict[int, tuple[Projectile, ...]],
        last_tick: int,
    ) -> Iterator[tuple[Any, GameState]]:
        event = self._build_event(queued.name, queued.row)
        if event is None:
            return
        yield event, self._state(queued.tick, participants, projectiles_by_tick, last_tick)

    def _build_event(self, name: str, row: dict) -> Any | None:
        if name == "grenade_thrown":
            return GrenadeThrown(projectile=row["projectile"])
        if name == "grenade_destroyed":
            return GrenadeDestroyed(projectile=row["projectile"])
        if name == "round_start":
            return RoundStart()
        if name == "round_freeze_end":
            return FreezeTimeEnd()
        if name == "round_end":
            return RoundEnd(winner=team_to_string(row.get("winner")), reason=row.get("reason"))
        if name == "player_death":
            return Kill(
                killer=_event_player(row, "attacker"),
                victim=_event_player(row, "user"),
                weapon=safe_str(row.get("weapon")),
                headshot=safe_bool(row.get("headshot")),
                penetrated_objects=safe_int(row.get("penetrated")),
            )
        if name == "bomb_pickup":
            self._bomb_carrier = safe_int(row.get("user_steamid"))
            return BombPickup(player=self._bomb_carrier)
        if name == "bomb_dropped":
            self._bomb_carrier = 0
            self._bomb_pos = _event_position(row, "user_")
            return BombDropped()
        if name == "bomb_planted":
            self._bomb_carrier = 0
            self._bomb_pos = _event_position(row, "user_")
            return BombPlanted()
        if name == "bomb_defused":
            return BombDefused()
        if name == "bomb_exploded":
            return BombExploded()

        x, y, z = _event_position(row, "")
        if name == "smokegrenade_detonate":
            return SmokeStart(x=x, y=y, z=z)
        if name == "smokegrenade_expired":
            return SmokeExpired(x=x, y=y, z=z)
        if name == "inferno_startburn":
            return InfernoStart(x=x, y=y, z=z)
        if name == "inferno_expire":
            return InfernoExpired(x=x, y=y, z=z)
        if name == "decoy_started":
            return DecoyStart(x=x, y=y, z=z)

        logger.debug(f"Skipping unsupported event {name}")
        return None


def _event_position(row: dict, prefix: str) -> tuple[float, float, float]:
    """Position columns of an event row: x/y/z for world events, <prefix>X/Y/Z for player props."""
    if not prefix:
        return (
            safe_float(row.get("x", row.get("X"))),
            safe_float(row.get("y", row.get("Y"))),
            safe_float(row.get("z", row.get("Z"))),
        )
    return (
        safe_float(row.get(f"{prefix}X")),
        safe_float(row.get(f"{prefix}Y")),
        safe_float(row.get(f"{prefix}Z")),
    )


def _event_player(row: dict, prefix: str) -> Participant | None:
    """Build the attacker/victim of a player_death row; None for world kills."""
    steam_id = safe_int(row.get(f"{prefix}_steamid"))
    if not steam_id:
        return None
    x, y, z = _event_position(row, f"{prefix}_")
    return Participant(
        steam_id=steam_id,
        name=safe_str(row.get(f"{prefix}_name")),
        team=team_to_string(row.get(f"{prefix}_team_num")),
        x=x,
        y=y,
        z=z,
    )
