"""Tests for the parse pipeline driving a collector over an event source."""

from unittest.mock import patch

import pytest

from cs2replay.errors import DemoParseError, UnexpectedEndOfDemo
from cs2replay.events import (
    EventSource,
    FrameDone,
    FreezeTimeEnd,
    GameState,
    GrenadeThrown,
    Projectile,
    RoundEnd,
    RoundStart,
    ServerInfo,
)
from cs2replay.pipeline import collect_match, generate_match_id, parse_demo


class FakeSource:
    """Replays a fixed list of (event, state) pairs, optionally failing at the end."""

    def __init__(self, items, error=None):
        self.items = items
        self.error = error

    def events(self):
        yield from self.items
        if self.error is not None:
            raise self.error


def _state(tick, progress=0.0, participants=()):
    return GameState(
        tick=tick, tick_rate=64.0, current_time=tick / 64.0, participants=participants, progress=progress
    )


def _two_round_stream(make_player):
    player = make_player(steam_id=11, name="alice", team="ct")
    items = [(ServerInfo(map_name="de_inferno"), _state(0))]
    for start, winner in ((100, "ct"), (3000, "t")):
        items.append((RoundStart(), _state(start - 50)))
        items.append((FreezeTimeEnd(), _state(start)))
        for tick in range(start, start + 200, 13):
            items.append((FrameDone(), _state(tick, progress=tick / 6000, participants=(player,))))
        items.append((RoundEnd(winner=winner, reason=9), _state(start + 200)))
    return items


class TestCollectMatch:
    def test_fake_source_satisfies_protocol(self):
        assert isinstance(FakeSource([]), EventSource)

    def test_full_stream(self, make_player, app_config):
        match = collect_match(FakeSource(_two_round_stream(make_player)), "ab12", config=app_config)

        assert match.id == "ab12"
        assert match.map == "de_inferno"
        assert [r.number for r in match.rounds] == [1, 2]
        assert [r.winner for r in match.rounds] == ["ct", "t"]
        assert match.tick_rate == 64.0
        assert [p.steam_id for p in match.teams.ct.players] == [11]

    def test_progress_is_monotonic_and_bounded(self, make_player, app_config):
        items = _two_round_stream(make_player)
        # A source reporting a stale value must not move the bar backwards
        items.insert(5, (FrameDone(), _state(150, progress=-1.0)))
        items.append((FrameDone(), _state(9000, progress=1.5)))
        reported = []

        collect_match(FakeSource(items), "ab12", on_progress=reported.append, config=app_config)

        assert reported
        assert reported == sorted(reported)
        assert all(0.0 <= p <= 1.0 for p in reported)
        assert reported[-1] == 1.0

    def test_unexpected_end_keeps_partial_result(self, make_player, app_config):
        items = _two_round_stream(make_player)[:8]
        source = FakeSource(items, error=UnexpectedEndOfDemo("demo ends early"))

        match = collect_match(source, "ab12", config=app_config)

        assert len(match.rounds) == 1
        assert match.rounds[0].winner == ""

    def test_other_errors_raise_parse_error(self, make_player, app_config):
        source = FakeSource(_two_round_stream(make_player)[:5], error=DemoParseError("bad packet"))
        with pytest.raises(DemoParseError, match="bad packet"):
            collect_match(source, "ab12", config=app_config)

    def test_unknown_exception_wrapped(self, app_config):
        source = FakeSource([(ServerInfo(map_name="de_nuke"), _state(0))], error=RuntimeError("boom"))
        with pytest.raises(DemoParseError) as exc_info:
            collect_match(source, "ab12", config=app_config)
        assert not isinstance(exc_info.value, UnexpectedEndOfDemo)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_undetonated_grenade_appears_once(self, app_config):
        proj = Projectile(entity_id=3, grenade_type="he", thrower=11, x=5, y=5)
        items = [
            (FreezeTimeEnd(), _state(0)),
            (GrenadeThrown(proj), _state(10)),
            (FrameDone(), _state(13)),
        ]
        match = collect_match(FakeSource(items), "ab12", config=app_config)
        assert len(match.rounds[0].grenades) == 1

    def test_empty_stream(self, app_config):
        match = collect_match(FakeSource([]), "ab12", config=app_config)
        assert match.rounds == []
        assert match.duration == 0.0


class TestParseDemo:
    def test_uses_demoparser2_source(self, app_config, tmp_path):
        demo = tmp_path / "match.dem"
        demo.write_bytes(b"")
        with patch("cs2replay.sources.demoparser2_source.Demoparser2Source") as mock_source:
            mock_source.return_value = FakeSource([(ServerInfo(map_name="de_vertigo"), _state(0))])
            match = parse_demo(demo, "cafe", config=app_config)

        mock_source.assert_called_once_with(demo, app_config.parser)
        assert match.id == "cafe"
        assert match.map == "de_vertigo"

    def test_generates_id_when_missing(self, app_config, tmp_path):
        with patch("cs2replay.sources.demoparser2_source.Demoparser2Source") as mock_source:
            mock_source.return_value = FakeSource([])
            match = parse_demo(tmp_path / "x.dem", config=app_config)
        assert len(match.id) == 4


class TestGenerateMatchId:
    def test_length(self):
        assert len(generate_match_id()) == 4
        assert len(generate_match_id(8)) == 16

    def test_hex(self):
        int(generate_match_id(), 16)
