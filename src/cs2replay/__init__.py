"""
cs2replay - CS2 demo to 2D replay recordings

Reads a Counter-Strike 2 demo and produces a round-by-round match recording:
player snapshots at a fixed rate, kills, bomb state, and grenades with
compressed flight paths, ready to be serialized as JSON.

Usage:
    from cs2replay import parse_demo

    match = parse_demo("match.dem")
    for r in match.rounds:
        print(r.number, r.winner, r.win_reason)
"""

__version__ = "0.1.0"
__author__ = "cs2replay Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "parse_demo":
        from cs2replay.pipeline import parse_demo
        return parse_demo
    elif name == "collect_match":
        from cs2replay.pipeline import collect_match
        return collect_match
    elif name == "Demoparser2Source":
        from cs2replay.sources.demoparser2_source import Demoparser2Source
        return Demoparser2Source
    elif name == "RoundCollector":
        from cs2replay.collector.rounds import RoundCollector
        return RoundCollector
    elif name == "Match":
        from cs2replay.models import Match
        return Match
    elif name == "write_match":
        from cs2replay.export import write_match
        return write_match
    elif name == "JobStore":
        from cs2replay.jobs import JobStore
        return JobStore
    elif name == "ParseWorker":
        from cs2replay.jobs import ParseWorker
        return ParseWorker
    elif name == "DemoParseError":
        from cs2replay.errors import DemoParseError
        return DemoParseError
    raise AttributeError(f"module 'cs2replay' has no attribute '{name}'")


__all__ = [
    "__version__",
    "parse_demo",
    "collect_match",
    "Demoparser2Source",
    "RoundCollector",
    "Match",
    "write_match",
    "JobStore",
    "ParseWorker",
    "DemoParseError",
]
