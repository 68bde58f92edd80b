"""
Match recording data model.

A Match owns an ordered list of Rounds; each Round carries the sampled
Snapshots, the Kills and the committed Grenades recorded while it was open.
Every class renders itself with to_dict() using the key names the replay
viewer reads (camelCase).
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PlayerInfo:
    """Roster entry."""

    steam_id: int
    name: str

    def to_dict(self) -> dict:
        return {"steamId": self.steam_id, "name": self.name}


@dataclass
class TeamInfo:
    name: str = ""
    players: list[PlayerInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "players": [p.to_dict() for p in self.players]}


@dataclass
class Teams:
    ct: TeamInfo = field(default_factory=TeamInfo)
    t: TeamInfo = field(default_factory=TeamInfo)

    def to_dict(self) -> dict:
        return {"ct": self.ct.to_dict(), "t": self.t.to_dict()}


@dataclass
class BombState:
    """Bomb state at a single snapshot."""

    x: float
    y: float
    state: str  # "carried", "dropped", "planted", "defused", "exploded"
    carrier: int = 0  # Steam ID, 0 when nobody carries it

    def to_dict(self) -> dict:
        result = {"x": self.x, "y": self.y, "state": self.state}
        if self.carrier:
            result["carrier"] = self.carrier
        return result


@dataclass
class PlayerState:
    """Player state at a single snapshot."""

    steam_id: int
    name: str
    team: str  # "ct", "t" or ""
    x: float
    y: float
    z: float
    yaw: float
    hp: int
    armor: int
    is_alive: bool
    weapon: str = ""
    has_defuser: bool = False
    flash_alpha: float = 0.0  # 0-255

    def to_dict(self) -> dict:
        return {
            "steamId": self.steam_id,
            "name": self.name,
            "team": self.team,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "yaw": self.yaw,
            "hp": self.hp,
            "armor": self.armor,
            "isAlive": self.is_alive,
            "weapon": self.weapon,
            "hasDefuser": self.has_defuser,
            "flashAlpha": self.flash_alpha,
        }


@dataclass
class Snapshot:
    """World state sampled at one tick."""

    tick: int
    time_in_round: float
    bomb: BombState | None = None
    players: list[PlayerState] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {"tick": self.tick, "timeInRound": self.time_in_round}
        if self.bomb is not None:
            result["bomb"] = self.bomb.to_dict()
        result["players"] = [p.to_dict() for p in self.players]
        return result


@dataclass
class KillEvent:
    tick: int
    time_in_round: float
    attacker: int = 0
    victim: int = 0
    weapon: str = ""
    headshot: bool = False
    wallbang: bool = False
    attacker_x: float = 0.0
    attacker_y: float = 0.0
    victim_x: float = 0.0
    victim_y: float = 0.0

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "timeInRound": self.time_in_round,
            "attacker": self.attacker,
            "victim": self.victim,
            "weapon": self.weapon,
            "headshot": self.headshot,
            "wallbang": self.wallbang,
            "attackerX": self.attacker_x,
            "attackerY": self.attacker_y,
            "victimX": self.victim_x,
            "victimY": self.victim_y,
        }


@dataclass
class TrajectoryPoint:
    """A grenade position at a time in round."""

    t: float
    x: float
    y: float

    def to_dict(self) -> dict:
        return {"t": self.t, "x": self.x, "y": self.y}


@dataclass
class GrenadeEvent:
    """A grenade from throw to detonation, with its compressed flight path."""

    type: str
    thrower: int = 0

    throw_tick: int = 0
    throw_time: float = 0.0
    throw_x: float = 0.0
    throw_y: float = 0.0

    detonate_tick: int = 0
    detonate_time: float = 0.0
    detonate_x: float = 0.0
    detonate_y: float = 0.0

    # None until a detonation/expiry signal resolves it
    effect_duration: float | None = None

    trajectory: list[TrajectoryPoint] = field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return self.effect_duration is not None

    def to_dict(self) -> dict:
        result = {
            "type": self.type,
            "thrower": self.thrower,
            "throwTick": self.throw_tick,
            "throwTime": self.throw_time,
            "throwX": self.throw_x,
            "throwY": self.throw_y,
            "detonateTick": self.detonate_tick,
            "detonateTime": self.detonate_time,
            "detonateX": self.detonate_x,
            "detonateY": self.detonate_y,
        }
        if self.effect_duration is not None:
            result["effectDuration"] = self.effect_duration
        if self.trajectory:
            result["trajectory"] = [p.to_dict() for p in self.trajectory]
        return result


@dataclass
class Round:
    """A single round, from freeze time end to the end of its post-round buffer."""

    number: int
    winner: str = ""
    win_reason: str = ""
    end_t_score: int = 0
    end_ct_score: int = 0
    snapshots: list[Snapshot] = field(default_factory=list)
    kills: list[KillEvent] = field(default_factory=list)
    grenades: list[GrenadeEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "winner": self.winner,
            "winReason": self.win_reason,
            "endTScore": self.end_t_score,
            "endCTScore": self.end_ct_score,
            "snapshots": [s.to_dict() for s in self.snapshots],
            "kills": [k.to_dict() for k in self.kills],
            "grenades": [g.to_dict() for g in self.grenades],
        }


@dataclass
class Match:
    """Complete recording of one demo."""

    id: str
    map: str = ""
    tick_rate: float = 0.0
    duration: float = 0.0
    teams: Teams = field(default_factory=Teams)
    rounds: list[Round] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "map": self.map,
            "tickRate": self.tick_rate,
            "duration": self.duration,
            "teams": self.teams.to_dict(),
            "rounds": [r.to_dict() for r in self.rounds],
        }

    def get_round(self, number: int) -> Round | None:
        """Get a round by its 1-based number."""
        for r in self.rounds:
            if r.number == number:
                return r
        return None
