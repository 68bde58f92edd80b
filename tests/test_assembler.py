"""Tests for match assembly and roster construction."""

from cs2replay.collector.assembler import assemble_match, build_teams
from cs2replay.events import GameState
from cs2replay.models import Match, PlayerState, Round, Snapshot


def _ps(steam_id, name, team):
    return PlayerState(
        steam_id=steam_id, name=name, team=team, x=0, y=0, z=0, yaw=0, hp=100, armor=0, is_alive=True
    )


def _round(number, *snapshots):
    return Round(number=number, snapshots=[Snapshot(tick=i, time_in_round=0.0, players=list(p)) for i, p in enumerate(snapshots)])


class TestBuildTeams:
    def test_player_listed_once(self):
        """A CT seen in every snapshot appears exactly once, under ct."""
        rounds = [
            _round(1, [_ps(1, "alice", "ct")], [_ps(1, "alice", "ct")]),
            _round(2, [_ps(1, "alice", "ct")]),
        ]
        teams = build_teams(rounds)
        assert [p.steam_id for p in teams.ct.players] == [1]
        assert teams.t.players == []

    def test_player_who_left_after_first_round_is_kept(self):
        """A CT seen only in round 1 is still on the roster, exactly once."""
        rounds = [
            _round(1, [_ps(1, "alice", "ct"), _ps(2, "bob", "t")], [_ps(1, "alice", "ct"), _ps(2, "bob", "t")]),
            _round(2, [_ps(2, "bob", "t"), _ps(3, "carol", "ct")]),
            _round(3, [_ps(2, "bob", "t"), _ps(3, "carol", "ct")]),
        ]
        teams = build_teams(rounds)
        assert [p.steam_id for p in teams.ct.players] == [1, 3]
        assert [p.name for p in teams.ct.players] == ["alice", "carol"]
        assert [p.steam_id for p in teams.t.players] == [2]

    def test_last_observation_wins(self):
        """Side swaps and renames resolve to the final state."""
        rounds = [
            _round(1, [_ps(1, "alice", "ct"), _ps(2, "bob", "t")]),
            _round(13, [_ps(1, "alice_new", "t"), _ps(2, "bob", "ct")]),
        ]
        teams = build_teams(rounds)
        assert [(p.steam_id, p.name) for p in teams.t.players] == [(1, "alice_new")]
        assert [(p.steam_id, p.name) for p in teams.ct.players] == [(2, "bob")]

    def test_first_appearance_order(self):
        rounds = [_round(1, [_ps(3, "c", "t")], [_ps(1, "a", "t"), _ps(3, "c", "t")], [_ps(2, "b", "t")])]
        teams = build_teams(rounds)
        assert [p.steam_id for p in teams.t.players] == [3, 1, 2]

    def test_skips_unidentified_and_teamless(self):
        rounds = [_round(1, [_ps(0, "bot", "ct"), _ps(5, "spec", "")])]
        teams = build_teams(rounds)
        assert teams.ct.players == []
        assert teams.t.players == []

    def test_no_rounds(self):
        teams = build_teams([])
        assert teams.ct.players == [] and teams.t.players == []


class TestAssembleMatch:
    def test_summary_from_final_state(self):
        match = Match(id="ab12", rounds=[_round(1, [_ps(1, "alice", "ct")])])
        state = GameState(tick=128000, tick_rate=64.0, current_time=2000.0)

        result = assemble_match(match, state)

        assert result is match
        assert match.tick_rate == 64.0
        assert match.duration == 2000.0
        assert match.teams.ct.players[0].name == "alice"

    def test_without_state_keeps_defaults(self):
        match = Match(id="ab12")
        assemble_match(match, None)
        assert match.tick_rate == 0.0
        assert match.duration == 0.0
