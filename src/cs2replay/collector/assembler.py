"""
Match Assembler

Runs once after the stream ends: attaches the summary fields and builds the
team rosters from snapshot data.

Rosters come from every snapshot of every round rather than from the engine's
end-of-demo player list, which misses anyone who disconnected before the end.
The last observation of a player wins, so name changes after a reconnect and
side swaps at half time resolve to the final state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from cs2replay.events import GameState
from cs2replay.models import Match, PlayerInfo, Round, Teams

logger = logging.getLogger(__name__)


def build_teams(rounds: Iterable[Round]) -> Teams:
    """Construct team rosters from the snapshot data of all rounds."""
    # steam_id -> (name, team); dict order is first appearance
    seen: dict[int, tuple[str, str]] = {}

    for rnd in rounds:
        for snap in rnd.snapshots:
            for ps in snap.players:
                if not ps.steam_id or not ps.team:
                    continue
                seen[ps.steam_id] = (ps.name, ps.team)

    teams = Teams()
    for steam_id, (name, team) in seen.items():
        info = PlayerInfo(steam_id=steam_id, name=name)
        if team == "ct":
            teams.ct.players.append(info)
        elif team == "t":
            teams.t.players.append(info)

    return teams


def assemble_match(match: Match, state: GameState | None) -> Match:
    """
    Attach final summary fields and rosters to a collected match.

    Args:
        match: Match whose rounds have all been committed
        state: Live state at the end of the stream, if the stream produced any

    Returns:
        The same match, completed in place
    """
    if state is not None:
        match.tick_rate = state.tick_rate
        match.duration = state.current_time
    match.teams = build_teams(match.rounds)

    logger.info(
        f"Assembled match {match.id}: map={match.map or 'unknown'}, {len(match.rounds)} rounds, "
        f"{len(match.teams.ct.players)} CT / {len(match.teams.t.players)} T players"
    )
    return match
