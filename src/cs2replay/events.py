"""
Domain events and the live game-state view handed to the collector.

An event source yields (event, state) pairs in demo order. The state is a
read-only view of the world at the tick the event fired; handlers read from it
during the call and never keep a reference.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

# ============================================================================
# Live state
# ============================================================================


@dataclass(frozen=True)
class Participant:
    """A playing participant as the engine reports them at one tick."""

    steam_id: int
    name: str
    team: str  # "ct", "t" or ""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    yaw: float = 0.0
    health: int = 0
    armor: int = 0
    is_alive: bool = False
    active_weapon: str = ""
    has_defuser: bool = False
    flash_remaining: float = 0.0  # Seconds of blindness left


@dataclass(frozen=True)
class BombInfo:
    carrier: Participant | None = None
    # Last on-ground position
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class Projectile:
    """A grenade projectile entity currently in the world."""

    entity_id: int
    grenade_type: str
    thrower: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True)
class GameState:
    """Read-only view of the live engine state at one tick."""

    tick: int
    tick_rate: float = 0.0
    current_time: float = 0.0  # Seconds since demo start
    participants: tuple[Participant, ...] = ()
    bomb: BombInfo = field(default_factory=BombInfo)
    projectiles: tuple[Projectile, ...] = ()
    progress: float = 0.0  # Fraction of the demo consumed, 0-1


# ============================================================================
# Events
# ============================================================================


@dataclass(frozen=True)
class ServerInfo:
    map_name: str


@dataclass(frozen=True)
class RoundStart:
    pass


@dataclass(frozen=True)
class FreezeTimeEnd:
    pass


@dataclass(frozen=True)
class RoundEnd:
    winner: str  # "ct", "t" or ""
    reason: int | str | None = None  # Raw engine reason, normalized by the collector


@dataclass(frozen=True)
class Kill:
    killer: Participant | None
    victim: Participant | None
    weapon: str = ""
    headshot: bool = False
    penetrated_objects: int = 0


@dataclass(frozen=True)
class BombPlanted:
    pass


@dataclass(frozen=True)
class BombDefused:
    pass


@dataclass(frozen=True)
class BombExploded:
    pass


@dataclass(frozen=True)
class BombPickup:
    player: int  # Steam ID, 0 if unknown


@dataclass(frozen=True)
class BombDropped:
    pass


@dataclass(frozen=True)
class GrenadeThrown:
    projectile: Projectile


@dataclass(frozen=True)
class GrenadeDestroyed:
    projectile: Projectile


@dataclass(frozen=True)
class SmokeStart:
    """Smoke cloud formed. Carries a position only."""

    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class SmokeExpired:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class InfernoStart:
    """Fire ignited by a molotov/incendiary that already detonated."""

    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class InfernoExpired:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class DecoyStart:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class FrameDone:
    """All events of the current tick have been delivered."""


DomainEvent = (
    ServerInfo
    | RoundStart
    | FreezeTimeEnd
    | RoundEnd
    | Kill
    | BombPlanted
    | BombDefused
    | BombExploded
    | BombPickup
    | BombDropped
    | GrenadeThrown
    | GrenadeDestroyed
    | SmokeStart
    | SmokeExpired
    | InfernoStart
    | InfernoExpired
    | DecoyStart
    | FrameDone
)


@runtime_checkable
class EventSource(Protocol):
    """Anything that can replay a demo as an ordered event stream."""

    def events(self) -> Iterator[tuple[DomainEvent, GameState]]:
        """
        Yield (event, state) pairs in true temporal order.

        May raise UnexpectedEndOfDemo after yielding a prefix of the stream,
        or DemoParseError for any other decode failure.
        """
        ...
