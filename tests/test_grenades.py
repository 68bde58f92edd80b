"""Tests for grenade lifecycle correlation."""

import pytest

from cs2replay.collector.grenades import GrenadeCorrelator, quantize_pos, squared_distance
from cs2replay.core.config import CollectorConfig
from cs2replay.events import Projectile


def _proj(entity_id, grenade_type, x=0.0, y=0.0, thrower=1):
    return Projectile(entity_id=entity_id, grenade_type=grenade_type, thrower=thrower, x=x, y=y)


@pytest.fixture
def correlator():
    return GrenadeCorrelator(CollectorConfig())


class TestHelpers:
    def test_quantize_pos_rounds_to_nearest(self):
        assert quantize_pos(100.4, -20.6) == (100, -21)
        assert quantize_pos(100.49, 0.0) == quantize_pos(99.51, 0.0)

    def test_squared_distance(self):
        assert squared_distance(0, 0, 3, 4) == 25


class TestIdentityMatched:
    """HE and flash resolve through the destroy event's entity id."""

    def test_throw_then_destroy_commits(self, correlator):
        correlator.on_throw(_proj(7, "he", 10, 20), tick=100, time=1.0)
        assert correlator.inflight_count == 1

        correlator.on_destroy(_proj(7, "he", 300, 400), tick=200, time=2.5)
        assert correlator.inflight_count == 0
        assert len(correlator.committed) == 1

        grenade = correlator.committed[0]
        assert grenade.type == "he"
        assert grenade.thrower == 1
        assert (grenade.throw_x, grenade.throw_y) == (10, 20)
        assert grenade.detonate_tick == 200
        assert grenade.detonate_time == 2.5
        assert (grenade.detonate_x, grenade.detonate_y) == (300, 400)

    def test_destroy_unknown_entity_ignored(self, correlator):
        correlator.on_destroy(_proj(99, "flash"), tick=10, time=0.1)
        assert correlator.committed == []

    def test_throw_seeds_trajectory(self, correlator):
        correlator.on_throw(_proj(1, "flash", 5, 6), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "flash", 5, 6), tick=10, time=0.2)
        assert [(p.x, p.y) for p in correlator.committed[0].trajectory] == [(5, 6)]

    def test_sample_appends_only_tracked(self, correlator):
        correlator.on_throw(_proj(1, "he", 0, 0), tick=0, time=0.0)
        correlator.sample([_proj(1, "he", 10, 10), _proj(2, "he", 50, 50)], tick=13, time=0.2)
        correlator.sample([_proj(1, "he", 20, 20)], tick=26, time=0.4)
        correlator.on_destroy(_proj(1, "he", 25, 25), tick=30, time=0.47)

        trajectory = correlator.committed[0].trajectory
        assert [(p.x, p.y) for p in trajectory] == [(0, 0), (10, 10), (20, 20)]
        assert correlator.inflight_count == 0

    def test_long_flight_is_compressed(self):
        correlator = GrenadeCorrelator(CollectorConfig(max_trajectory_points=10))
        correlator.on_throw(_proj(1, "flash", 0, 0), tick=0, time=0.0)
        for i in range(1, 40):
            correlator.sample([_proj(1, "flash", i, i)], tick=i * 13, time=i * 0.2)
        correlator.on_destroy(_proj(1, "flash", 40, 40), tick=520, time=8.0)

        trajectory = correlator.committed[0].trajectory
        assert len(trajectory) == 10
        assert (trajectory[0].x, trajectory[-1].x) == (0, 39)


class TestSmoke:
    """Smokes commit on the cloud event and are patched on expiry."""

    def test_cloud_matches_nearest_inflight_smoke(self, correlator):
        correlator.on_throw(_proj(1, "smoke", 0, 0), tick=0, time=0.0)
        correlator.on_smoke_start(0.4, 0.4, tick=64, time=1.0)

        assert correlator.inflight_count == 0
        grenade = correlator.committed[0]
        assert grenade.detonate_tick == 64
        assert (grenade.detonate_x, grenade.detonate_y) == (0.4, 0.4)
        assert grenade.effect_duration == 18.0

    def test_nearest_of_two(self, correlator):
        correlator.on_throw(_proj(1, "smoke", 0, 0), tick=0, time=0.0)
        correlator.on_throw(_proj(2, "smoke", 1000, 1000), tick=0, time=0.0)
        correlator.on_smoke_start(990, 1010, tick=64, time=1.0)

        assert correlator.inflight_count == 1
        assert correlator.committed[0].throw_x == 1000

    def test_ignores_other_types(self, correlator):
        correlator.on_throw(_proj(1, "flash", 0, 0), tick=0, time=0.0)
        correlator.on_smoke_start(0, 0, tick=64, time=1.0)
        assert correlator.committed == []
        assert correlator.inflight_count == 1

    def test_expiry_measures_duration(self, correlator):
        correlator.on_throw(_proj(1, "smoke", 0, 0), tick=0, time=0.0)
        correlator.on_smoke_start(500.2, 300.1, tick=128, time=2.0)
        correlator.on_smoke_expired(499.8, 299.9, time=22.5)
        assert correlator.committed[0].effect_duration == pytest.approx(20.5)

    def test_expiry_without_cloud_ignored(self, correlator):
        correlator.on_smoke_expired(1, 1, time=5.0)
        assert correlator.committed == []

    def test_destroy_after_cloud_is_noop(self, correlator):
        """The projectile destroy at dissipation must not create a second record."""
        correlator.on_throw(_proj(1, "smoke", 0, 0), tick=0, time=0.0)
        correlator.on_smoke_start(50, 50, tick=64, time=1.0)
        correlator.on_destroy(_proj(1, "smoke", 50, 50), tick=1300, time=20.0)
        assert len(correlator.committed) == 1

    def test_max_match_distance(self):
        correlator = GrenadeCorrelator(CollectorConfig(max_match_distance=100.0))
        correlator.on_throw(_proj(1, "smoke", 0, 0), tick=0, time=0.0)
        correlator.on_smoke_start(500, 0, tick=64, time=1.0)
        assert correlator.committed == []

        correlator.on_smoke_start(60, 80, tick=70, time=1.1)
        assert len(correlator.committed) == 1


class TestFire:
    """Molotov and incendiary: destroy on impact, fire ignition patches duration."""

    def test_inferno_start_sets_cap(self, correlator):
        correlator.on_throw(_proj(1, "molotov", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "molotov", 200, 200), tick=100, time=1.5)
        correlator.on_inferno_start(201, 199, tick=101, time=1.6)
        assert correlator.committed[0].effect_duration == 7.0

    def test_inferno_expiry_clamped_to_cap(self, correlator):
        correlator.on_throw(_proj(1, "incendiary", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "incendiary", 200, 200), tick=100, time=1.5)
        correlator.on_inferno_start(200, 200, tick=101, time=1.6)
        correlator.on_inferno_expired(200, 200, time=20.0)
        assert correlator.committed[0].effect_duration == 7.0

    def test_inferno_expiry_shorter_than_cap(self, correlator):
        correlator.on_throw(_proj(1, "molotov", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "molotov", 200, 200), tick=100, time=1.5)
        correlator.on_inferno_start(200, 200, tick=101, time=1.6)
        correlator.on_inferno_expired(200, 200, time=5.5)
        assert correlator.committed[0].effect_duration == pytest.approx(4.0)

    def test_resolved_molotov_not_matched_again(self, correlator):
        correlator.on_throw(_proj(1, "molotov", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "molotov", 200, 200), tick=100, time=1.5)
        correlator.on_throw(_proj(2, "molotov", 0, 0), tick=110, time=1.7)
        correlator.on_destroy(_proj(2, "molotov", 900, 900), tick=200, time=3.0)

        correlator.on_inferno_start(200, 200, tick=101, time=1.6)
        correlator.on_inferno_start(200, 200, tick=201, time=3.1)

        assert correlator.committed[0].effect_duration == 7.0
        assert correlator.committed[1].effect_duration == 7.0

    def test_ignition_before_destroy_falls_back_to_inflight(self, correlator):
        correlator.on_throw(_proj(1, "molotov", 0, 0), tick=0, time=0.0)
        correlator.on_inferno_start(300, 300, tick=90, time=1.4)

        assert correlator.inflight_count == 0
        grenade = correlator.committed[0]
        assert (grenade.detonate_x, grenade.detonate_y) == (300, 300)
        assert grenade.effect_duration == 7.0

    def test_ignition_prefers_closer_inflight_over_stale_committed(self, correlator):
        """A molotov that burned out of bounds must not take the next fire."""
        correlator.on_throw(_proj(1, "molotov", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "molotov", -1000, -1000), tick=100, time=1.5)

        correlator.on_throw(_proj(2, "molotov", 0, 0), tick=200, time=3.0)
        correlator.sample([_proj(2, "molotov", 1990, 1995)], tick=390, time=6.0)
        correlator.on_inferno_start(2000, 2000, tick=400, time=6.2)

        stale, fresh = correlator.committed
        assert stale.effect_duration is None
        assert fresh.effect_duration == 7.0
        assert fresh.detonate_tick == 400
        assert (fresh.detonate_x, fresh.detonate_y) == (2000, 2000)
        assert correlator.inflight_count == 0

    def test_ignition_keeps_closer_committed_over_inflight(self, correlator):
        correlator.on_throw(_proj(1, "molotov", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "molotov", 500, 500), tick=100, time=1.5)
        correlator.on_throw(_proj(2, "incendiary", 0, 0), tick=101, time=1.6)
        correlator.sample([_proj(2, "incendiary", 100, 100)], tick=110, time=1.7)

        correlator.on_inferno_start(505, 495, tick=110, time=1.7)

        assert correlator.committed[0].effect_duration == 7.0
        assert correlator.inflight_count == 1

    def test_inferno_without_molotov_ignored(self, correlator):
        correlator.on_inferno_start(0, 0, tick=10, time=0.1)
        assert correlator.committed == []


class TestDecoy:
    def test_decoy_start_sets_nominal_duration(self, correlator):
        correlator.on_throw(_proj(1, "decoy", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "decoy", 40, 40), tick=100, time=1.5)
        correlator.on_decoy_start(40, 40, tick=100, time=1.5)
        assert correlator.committed[0].effect_duration == 15.0

    def test_decoy_start_prefers_closer_inflight_over_stale_committed(self, correlator):
        correlator.on_throw(_proj(1, "decoy", 0, 0), tick=0, time=0.0)
        correlator.on_destroy(_proj(1, "decoy", -800, 600), tick=100, time=1.5)
        correlator.on_throw(_proj(2, "decoy", 0, 0), tick=200, time=3.0)
        correlator.sample([_proj(2, "decoy", 300, 310)], tick=260, time=4.0)

        correlator.on_decoy_start(300, 310, tick=260, time=4.0)

        stale, fresh = correlator.committed
        assert stale.effect_duration is None
        assert fresh.effect_duration == 15.0
        assert fresh.detonate_time == 4.0


class TestFinalize:
    def test_inflight_grenade_force_committed_once(self, correlator):
        """A grenade that never detonated appears exactly once, at its last sampled point."""
        correlator.on_throw(_proj(1, "he", 0, 0), tick=0, time=0.0)
        correlator.sample([_proj(1, "he", 30, 40)], tick=13, time=0.2)

        grenades = correlator.finalize()
        assert len(grenades) == 1
        assert grenades[0].detonate_tick == 13
        assert (grenades[0].detonate_x, grenades[0].detonate_y) == (30, 40)
        assert grenades[0].effect_duration is None
        assert correlator.inflight_count == 0

    def test_reset_discards_everything(self, correlator):
        correlator.on_throw(_proj(1, "he"), tick=0, time=0.0)
        correlator.on_throw(_proj(2, "smoke"), tick=0, time=0.0)
        correlator.on_smoke_start(0, 0, tick=10, time=0.1)
        correlator.reset()
        assert correlator.committed == []
        assert correlator.inflight_count == 0
        correlator.on_smoke_expired(0, 0, time=20.0)
        assert correlator.finalize() == []
