"""
Round/event collector.

- trajectory: LTTB compression of grenade flight paths
- grenades: correlation of grenade lifecycle signals
- rounds: the round state machine
- assembler: post-stream rosters and summary fields
"""

from cs2replay.collector.assembler import assemble_match, build_teams
from cs2replay.collector.grenades import GrenadeCorrelator, InflightGrenade, quantize_pos
from cs2replay.collector.rounds import CollectorState, RoundCollector, flash_alpha
from cs2replay.collector.trajectory import downsample_trajectory

__all__ = [
    "CollectorState",
    "GrenadeCorrelator",
    "InflightGrenade",
    "RoundCollector",
    "assemble_match",
    "build_teams",
    "downsample_trajectory",
    "flash_alpha",
    "quantize_pos",
]
