"""
Round Collector

Turns the demo event stream into per-round records. The collector is a small
state machine:

    IDLE --freeze time end--> ACTIVE --round end--> PENDING_END
    PENDING_END --buffer expired / next round / stream end--> IDLE

Recording starts at freeze time end rather than round start, because round
start still fires during freeze time. After round end the round stays open
for a short buffer so the replay doesn't cut off on the last kill.

Snapshots are taken at a fixed cadence (5 per second by default) even though
frames arrive at the native tick rate, and every accepted snapshot also
samples the in-flight grenades for their trajectories.
"""

from __future__ import annotations

import logging
from enum import Enum

from cs2replay.collector.grenades import GrenadeCorrelator
from cs2replay.core.config import CollectorConfig
from cs2replay.core.constants import (
    FLASH_ALPHA_MAX,
    FLASH_SATURATION_SECONDS,
    BombStatus,
    normalize_win_reason,
)
from cs2replay.events import (
    BombDefused,
    BombDropped,
    BombExploded,
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
    RoundEnd,
    RoundStart,
    ServerInfo,
    SmokeExpired,
    SmokeStart,
)
from cs2replay.models import BombState, KillEvent, Match, PlayerState, Round, Snapshot

logger = logging.getLogger(__name__)


class CollectorState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PENDING_END = "pending_end"


def flash_alpha(remaining_seconds: float) -> float:
    """Flash overlay intensity (0-255) for the remaining blind time."""
    if remaining_seconds <= 0:
        return 0.0
    return min(remaining_seconds / FLASH_SATURATION_SECONDS * FLASH_ALPHA_MAX, FLASH_ALPHA_MAX)


class RoundCollector:
    """
    Aggregates one demo's event stream into the rounds of a Match.

    One instance handles exactly one stream. Events must arrive in demo
    order; the collector does not reorder or validate them.
    """

    def __init__(self, match: Match, config: CollectorConfig | None = None):
        self.match = match
        self.config = config or CollectorConfig()
        self.grenades = GrenadeCorrelator(self.config)

        self.current: Round | None = None
        self.pending_end = False
        self.snapshots: list[Snapshot] = []
        self.kills: list[KillEvent] = []

        self.round_start_tick = 0
        self.last_snapshot_tick = 0
        self.sample_interval = self.config.fallback_sample_interval
        self.round_end_tick = 0
        self.post_round_ticks = 0

        # Running score tallies, more consistent than the engine's team
        # scores which may not have updated when round end fires
        self.ct_score = 0
        self.t_score = 0

        self.bomb_state = ""
        self.bomb_carrier = 0

        self._handlers = {
            ServerInfo: self.on_server_info,
            RoundStart: self.on_round_start,
            FreezeTimeEnd: self.on_freeze_time_end,
            RoundEnd: self.on_round_end,
            Kill: self.on_kill,
            BombPlanted: self.on_bomb_planted,
            BombDefused: self.on_bomb_defused,
            BombExploded: self.on_bomb_exploded,
            BombPickup: self.on_bomb_pickup,
            BombDropped: self.on_bomb_dropped,
            GrenadeThrown: self.on_grenade_thrown,
            GrenadeDestroyed: self.on_grenade_destroyed,
            SmokeStart: self.on_smoke_start,
            SmokeExpired: self.on_smoke_expired,
            InfernoStart: self.on_inferno_start,
            InfernoExpired: self.on_inferno_expired,
            DecoyStart: self.on_decoy_start,
            FrameDone: self.on_frame,
        }

    @property
    def state(self) -> CollectorState:
        if self.current is None:
            return CollectorState.IDLE
        if self.pending_end:
            return CollectorState.PENDING_END
        return CollectorState.ACTIVE

    def dispatch(self, event, state: GameState) -> None:
        """Route a domain event to its handler."""
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug(f"No handler for {type(event).__name__}")
            return
        handler(event, state)

    # ------------------------------------------------------------------
    # Round boundaries
    # ------------------------------------------------------------------

    def on_server_info(self, event: ServerInfo, state: GameState) -> None:
        self.match.map = event.map_name

    def on_round_start(self, event: RoundStart, state: GameState) -> None:
        # Only closes a lingering post-round buffer; recording starts at freeze end
        if self.pending_end:
            self.finalize_round()

    def on_freeze_time_end(self, event: FreezeTimeEnd, state: GameState) -> None:
        if self.current is not None:
            self.finalize_round()

        self.current = Round(number=len(self.match.rounds) + 1)
        self.snapshots = []
        self.kills = []
        self.grenades.reset()
        self.pending_end = False
        self.round_start_tick = state.tick
        self.last_snapshot_tick = 0

        tick_rate = state.tick_rate
        if tick_rate > 0:
            self.sample_interval = round(tick_rate / self.config.snapshots_per_second)
            self.post_round_ticks = int(tick_rate * self.config.post_round_buffer_seconds)
        if self.sample_interval < 1:
            self.sample_interval = self.config.fallback_sample_interval

        self.bomb_state = ""
        self.bomb_carrier = 0
        logger.debug(f"Round {self.current.number} opened at tick {state.tick}")

    def on_round_end(self, event: RoundEnd, state: GameState) -> None:
        if self.current is None:
            return

        self.current.winner = event.winner
        self.current.win_reason = normalize_win_reason(event.reason)

        if event.winner == "ct":
            self.ct_score += 1
        elif event.winner == "t":
            self.t_score += 1
        self.current.end_ct_score = self.ct_score
        self.current.end_t_score = self.t_score

        # Don't finalize yet, keep capturing frames for the post-round buffer
        self.pending_end = True
        self.round_end_tick = state.tick

    def finalize_round(self) -> None:
        """Commit the open round to the match and return to idle."""
        if self.current is None:
            return

        self.current.snapshots = self.snapshots
        self.current.kills = self.kills
        self.current.grenades = self.grenades.finalize()
        self.match.rounds.append(self.current)
        logger.info(
            f"Round {self.current.number} committed: winner={self.current.winner or '-'} "
            f"({self.current.win_reason or 'unfinished'}), {len(self.snapshots)} snapshots, "
            f"{len(self.kills)} kills, {len(self.current.grenades)} grenades"
        )

        self.current = None
        self.pending_end = False
        self.snapshots = []
        self.kills = []
        self.grenades.reset()

    def flush(self) -> None:
        """Stream ended. Commit whatever round is still open, buffer or not."""
        if self.current is not None:
            logger.debug(f"Flushing round {self.current.number} at end of stream")
        self.finalize_round()

    # ------------------------------------------------------------------
    # Frames and snapshots
    # ------------------------------------------------------------------

    def on_frame(self, event: FrameDone | None, state: GameState) -> None:
        if self.current is None:
            return

        tick = state.tick

        # Cut off snapshot collection once the post-round buffer expires
        if self.pending_end and (tick - self.round_end_tick) > self.post_round_ticks:
            self.finalize_round()
            return

        if tick - self.last_snapshot_tick < self.sample_interval:
            return
        self.last_snapshot_tick = tick

        time = self.ticks_to_seconds(tick, state)
        snapshot = Snapshot(tick=tick, time_in_round=time, bomb=self.capture_bomb_state(state))
        for participant in state.participants:
            snapshot.players.append(self._player_state(participant))

        self.snapshots.append(snapshot)
        self.grenades.sample(state.projectiles, tick, time)

    def capture_bomb_state(self, state: GameState) -> BombState:
        bomb = state.bomb
        carrier = bomb.carrier
        if carrier is None and self.bomb_state == BombStatus.CARRIED.value and self.bomb_carrier:
            # The state has no carrier this frame; fall back to the last pickup
            carrier = next((p for p in state.participants if p.steam_id == self.bomb_carrier), None)
        if carrier is not None:
            return BombState(
                x=carrier.x,
                y=carrier.y,
                state=BombStatus.CARRIED.value,
                carrier=carrier.steam_id,
            )

        return BombState(x=bomb.x, y=bomb.y, state=self.bomb_state or BombStatus.DROPPED.value)

    @staticmethod
    def _player_state(p: Participant) -> PlayerState:
        return PlayerState(
            steam_id=p.steam_id,
            name=p.name,
            team=p.team,
            x=p.x,
            y=p.y,
            z=p.z,
            yaw=p.yaw,
            hp=p.health,
            armor=p.armor,
            is_alive=p.is_alive,
            weapon=p.active_weapon,
            has_defuser=p.has_defuser,
            flash_alpha=flash_alpha(p.flash_remaining),
        )

    # ------------------------------------------------------------------
    # Kills and bomb
    # ------------------------------------------------------------------

    def on_kill(self, event: Kill, state: GameState) -> None:
        if self.current is None:
            return

        tick = state.tick
        kill = KillEvent(
            tick=tick,
            time_in_round=self.ticks_to_seconds(tick, state),
            weapon=event.weapon,
            headshot=event.headshot,
            wallbang=event.penetrated_objects > 0,
        )
        if event.killer is not None:
            kill.attacker = event.killer.steam_id
            kill.attacker_x = event.killer.x
            kill.attacker_y = event.killer.y
        if event.victim is not None:
            kill.victim = event.victim.steam_id
            kill.victim_x = event.victim.x
            kill.victim_y = event.victim.y

        self.kills.append(kill)

    def on_bomb_planted(self, event: BombPlanted, state: GameState) -> None:
        if self.current is None:
            return
        self.bomb_state = BombStatus.PLANTED.value
        self.bomb_carrier = 0

    def on_bomb_defused(self, event: BombDefused, state: GameState) -> None:
        if self.current is None:
            return
        self.bomb_state = BombStatus.DEFUSED.value

    def on_bomb_exploded(self, event: BombExploded, state: GameState) -> None:
        if self.current is None:
            return
        self.bomb_state = BombStatus.EXPLODED.value

    def on_bomb_pickup(self, event: BombPickup, state: GameState) -> None:
        if self.current is None or not event.player:
            return
        self.bomb_state = BombStatus.CARRIED.value
        self.bomb_carrier = event.player

    def on_bomb_dropped(self, event: BombDropped, state: GameState) -> None:
        if self.current is None:
            return
        self.bomb_state = BombStatus.DROPPED.value
        self.bomb_carrier = 0

    # ------------------------------------------------------------------
    # Grenades (delegated to the correlator)
    # ------------------------------------------------------------------

    def on_grenade_thrown(self, event: GrenadeThrown, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_throw(event.projectile, state.tick, self.ticks_to_seconds(state.tick, state))

    def on_grenade_destroyed(self, event: GrenadeDestroyed, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_destroy(
            event.projectile, state.tick, self.ticks_to_seconds(state.tick, state)
        )

    def on_smoke_start(self, event: SmokeStart, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_smoke_start(
            event.x, event.y, state.tick, self.ticks_to_seconds(state.tick, state)
        )

    def on_smoke_expired(self, event: SmokeExpired, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_smoke_expired(event.x, event.y, self.ticks_to_seconds(state.tick, state))

    def on_inferno_start(self, event: InfernoStart, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_inferno_start(
            event.x, event.y, state.tick, self.ticks_to_seconds(state.tick, state)
        )

    def on_inferno_expired(self, event: InfernoExpired, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_inferno_expired(event.x, event.y, self.ticks_to_seconds(state.tick, state))

    def on_decoy_start(self, event: DecoyStart, state: GameState) -> None:
        if self.current is None:
            return
        self.grenades.on_decoy_start(
            event.x, event.y, state.tick, self.ticks_to_seconds(state.tick, state)
        )

    # ------------------------------------------------------------------

    def ticks_to_seconds(self, tick: int, state: GameState) -> float:
        """Seconds since the round started; 0 when the tick rate is unknown."""
        tick_rate = state.tick_rate
        if not tick_rate or tick_rate <= 0:
            return 0.0
        return (tick - self.round_start_tick) / tick_rate
