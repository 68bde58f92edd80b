"""Shared fixtures for building game states and event streams by hand."""

import pytest

from cs2replay.core.config import Cs2ReplayConfig, reset_config
from cs2replay.events import BombInfo, GameState, Participant, Projectile


@pytest.fixture(autouse=True)
def _isolated_config():
    """Start every test from an unloaded global config."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config(tmp_path):
    config = Cs2ReplayConfig()
    config.export.output_dir = str(tmp_path / "matches")
    config.jobs.match_dir = str(tmp_path / "matches")
    return config


@pytest.fixture
def make_player():
    """Factory for Participant with sensible live-player defaults."""

    def _make(steam_id=76561198000000001, name="Player", team="ct", x=0.0, y=0.0, **kwargs):
        kwargs.setdefault("health", 100)
        kwargs.setdefault("armor", 100)
        kwargs.setdefault("is_alive", True)
        kwargs.setdefault("active_weapon", "ak47")
        return Participant(steam_id=steam_id, name=name, team=team, x=x, y=y, **kwargs)

    return _make


@pytest.fixture
def make_state():
    """Factory for GameState at 64 tick."""

    def _make(tick, tick_rate=64.0, participants=(), projectiles=(), bomb=None, progress=0.0):
        return GameState(
            tick=tick,
            tick_rate=tick_rate,
            current_time=tick / tick_rate if tick_rate else 0.0,
            participants=tuple(participants),
            bomb=bomb or BombInfo(),
            projectiles=tuple(projectiles),
            progress=progress,
        )

    return _make


@pytest.fixture
def make_projectile():
    def _make(entity_id, grenade_type="smoke", x=0.0, y=0.0, thrower=76561198000000001):
        return Projectile(entity_id=entity_id, grenade_type=grenade_type, thrower=thrower, x=x, y=y)

    return _make
