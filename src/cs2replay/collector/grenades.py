"""
Grenade Correlator

Tracks grenades from throw to resolution for the round that is currently
open. The engine signals detonation differently per grenade type:

- HE / flashbang: the projectile destroy event carries the same entity id
  as the throw, so a direct lookup commits it.
- Smoke: the destroy event only fires when the cloud dissipates. The cloud
  forming is a separate, position-only event, matched to the in-flight smoke
  thrown nearest to it. Expiry is matched back by quantized position.
- Molotov / incendiary: the projectile is destroyed on impact; the fire
  ignition that follows carries a position only and is matched to the nearest
  fire grenade that has no effect duration yet, committed or still in flight
  when the destroy event has not been seen.
- Decoy: position-only start event, matched like fire grenades, with a fixed
  nominal duration since no expiry is signalled.

A grenade lives in exactly one place at a time: the in-flight table (keyed by
entity id) until it is committed, then the committed list (addressed by
index) where it stays. Only its effect duration is patched after commit.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from cs2replay.collector.trajectory import downsample_trajectory
from cs2replay.core.config import CollectorConfig
from cs2replay.core.constants import FIRE_GRENADES, GrenadeType
from cs2replay.events import Projectile
from cs2replay.models import GrenadeEvent, TrajectoryPoint

logger = logging.getLogger(__name__)


def quantize_pos(x: float, y: float) -> tuple[int, int]:
    """
    Bucket world coordinates to integers for use as lookup keys.

    Positions reported by related events (cloud formed / cloud expired) can
    differ by small floating-point amounts, so both round to the nearest unit.
    """
    return (int(round(x)), int(round(y)))


def squared_distance(ax: float, ay: float, bx: float, by: float) -> float:
    return (ax - bx) ** 2 + (ay - by) ** 2


@dataclass
class InflightGrenade:
    """A thrown grenade that has not detonated yet."""

    entity_id: int
    event: GrenadeEvent
    trajectory: list[TrajectoryPoint] = field(default_factory=list)
    last_tick: int = 0

    @property
    def last_point(self) -> TrajectoryPoint:
        return self.trajectory[-1]


class GrenadeCorrelator:
    """
    Matches grenade lifecycle signals to grenade records for one round.

    Times are passed in by the caller as seconds since round start, so the
    correlator never needs the tick rate.
    """

    def __init__(self, config: CollectorConfig | None = None):
        self.config = config or CollectorConfig()
        self.committed: list[GrenadeEvent] = []
        self._inflight: dict[int, InflightGrenade] = {}
        # Quantized detonation position -> committed index, until expiry
        self._smoke_by_pos: dict[tuple[int, int], int] = {}
        self._inferno_by_pos: dict[tuple[int, int], int] = {}

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def reset(self) -> None:
        """Discard all tables. Called when a new round opens."""
        self.committed = []
        self._inflight = {}
        self._smoke_by_pos = {}
        self._inferno_by_pos = {}

    # ------------------------------------------------------------------
    # Throw / sampling / identity-matched detonation
    # ------------------------------------------------------------------

    def on_throw(self, projectile: Projectile, tick: int, time: float) -> None:
        event = GrenadeEvent(
            type=projectile.grenade_type,
            thrower=projectile.thrower,
            throw_tick=tick,
            throw_time=time,
            throw_x=projectile.x,
            throw_y=projectile.y,
        )
        self._inflight[projectile.entity_id] = InflightGrenade(
            entity_id=projectile.entity_id,
            event=event,
            trajectory=[TrajectoryPoint(t=time, x=projectile.x, y=projectile.y)],
            last_tick=tick,
        )

    def sample(self, projectiles: Iterable[Projectile], tick: int, time: float) -> None:
        """Append the current position of every tracked in-flight grenade."""
        for proj in projectiles:
            ig = self._inflight.get(proj.entity_id)
            if ig is None:
                continue
            ig.trajectory.append(TrajectoryPoint(t=time, x=proj.x, y=proj.y))
            ig.last_tick = tick

    def on_destroy(self, projectile: Projectile, tick: int, time: float) -> None:
        if projectile.entity_id not in self._inflight:
            # Smokes were already committed when the cloud formed
            logger.debug(f"Destroy for untracked grenade entity {projectile.entity_id}")
            return
        self._commit(projectile.entity_id, tick, time, projectile.x, projectile.y)

    # ------------------------------------------------------------------
    # Position-only signals
    # ------------------------------------------------------------------

    def on_smoke_start(self, x: float, y: float, tick: int, time: float) -> None:
        entity_id, _ = self._nearest_inflight({GrenadeType.SMOKE}, x, y)
        if entity_id is None:
            logger.debug(f"Smoke cloud at ({x:.0f}, {y:.0f}) has no in-flight smoke")
            return

        idx = self._commit(entity_id, tick, time, x, y)
        # Nominal duration until the expiry signal measures the real one
        self.committed[idx].effect_duration = self.config.smoke_duration
        self._smoke_by_pos[quantize_pos(x, y)] = idx

    def on_smoke_expired(self, x: float, y: float, time: float) -> None:
        idx = self._smoke_by_pos.pop(quantize_pos(x, y), None)
        if idx is None:
            logger.debug(f"Smoke expiry at ({x:.0f}, {y:.0f}) has no matching cloud")
            return

        duration = time - self.committed[idx].detonate_time
        if duration > 0:
            self.committed[idx].effect_duration = duration

    def on_inferno_start(self, x: float, y: float, tick: int, time: float) -> None:
        idx = self._resolve_nearest(FIRE_GRENADES, x, y, tick, time)
        if idx is None:
            logger.debug(f"Fire at ({x:.0f}, {y:.0f}) has no unresolved molotov")
            return

        self.committed[idx].effect_duration = self.config.molotov_max_duration
        self._inferno_by_pos[quantize_pos(x, y)] = idx

    def on_inferno_expired(self, x: float, y: float, time: float) -> None:
        idx = self._inferno_by_pos.pop(quantize_pos(x, y), None)
        if idx is None:
            logger.debug(f"Fire expiry at ({x:.0f}, {y:.0f}) has no matching ignition")
            return

        duration = min(time - self.committed[idx].detonate_time, self.config.molotov_max_duration)
        if duration > 0:
            self.committed[idx].effect_duration = duration

    def on_decoy_start(self, x: float, y: float, tick: int, time: float) -> None:
        idx = self._resolve_nearest({GrenadeType.DECOY}, x, y, tick, time)
        if idx is None:
            logger.debug(f"Decoy at ({x:.0f}, {y:.0f}) has no unresolved decoy")
            return
        self.committed[idx].effect_duration = self.config.decoy_duration

    # ------------------------------------------------------------------
    # Round end
    # ------------------------------------------------------------------

    def finalize(self) -> list[GrenadeEvent]:
        """
        Commit every grenade still mid-air and return the round's grenades.

        The last sampled position stands in for the detonation point.
        """
        for entity_id in list(self._inflight):
            ig = self._inflight[entity_id]
            last = ig.last_point
            self._commit(entity_id, ig.last_tick, last.t, last.x, last.y)
        return self.committed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _commit(self, entity_id: int, tick: int, time: float, x: float, y: float) -> int:
        ig = self._inflight.pop(entity_id)
        event = ig.event
        event.detonate_tick = tick
        event.detonate_time = time
        event.detonate_x = x
        event.detonate_y = y
        event.trajectory = downsample_trajectory(ig.trajectory, self.config.max_trajectory_points)
        self.committed.append(event)
        return len(self.committed) - 1

    def _within_bound(self, dist_sq: float) -> bool:
        bound = self.config.max_match_distance
        return bound is None or dist_sq <= bound * bound

    def _nearest_inflight(
        self, types: Iterable[str], x: float, y: float, from_last: bool = False
    ) -> tuple[int | None, float]:
        """
        Entity id and squared distance of the nearest in-flight grenade of a given type.

        Distance is measured from the throw position, or from the last sampled
        position when from_last is set.
        """
        types = set(types)
        best_id = None
        best_dist = math.inf
        for entity_id, ig in self._inflight.items():
            if ig.event.type not in types:
                continue
            if from_last:
                px, py = ig.last_point.x, ig.last_point.y
            else:
                px, py = ig.event.throw_x, ig.event.throw_y
            dist = squared_distance(px, py, x, y)
            if dist < best_dist and self._within_bound(dist):
                best_dist = dist
                best_id = entity_id
        return best_id, best_dist

    def _nearest_unresolved(self, types: Iterable[str], x: float, y: float) -> tuple[int | None, float]:
        """Index and squared distance of the nearest committed grenade without an effect duration, newest first on ties."""
        types = set(types)
        best_idx = None
        best_dist = math.inf
        for idx in range(len(self.committed) - 1, -1, -1):
            grenade = self.committed[idx]
            if grenade.type not in types or grenade.is_resolved:
                continue
            dist = squared_distance(grenade.detonate_x, grenade.detonate_y, x, y)
            if dist < best_dist and self._within_bound(dist):
                best_dist = dist
                best_idx = idx
        return best_idx, best_dist

    def _resolve_nearest(
        self, types: Iterable[str], x: float, y: float, tick: int, time: float
    ) -> int | None:
        """
        Find the grenade a position-only start signal belongs to.

        Committed grenades are compared by detonation point and in-flight ones
        by their last sampled position; the closer candidate wins, committed on
        ties. An in-flight winner is committed at the signal position.
        """
        types = set(types)
        idx, committed_dist = self._nearest_unresolved(types, x, y)
        entity_id, inflight_dist = self._nearest_inflight(types, x, y, from_last=True)

        if entity_id is not None and (idx is None or inflight_dist < committed_dist):
            return self._commit(entity_id, tick, time, x, y)
        return idx
