"""
Parse pipeline: drives one RoundCollector over one event source.

    match = parse_demo("match.dem", on_progress=lambda p: print(f"{p:.0%}"))

A truncated demo still produces a match with the rounds seen so far. The
source tolerates the end-of-demo error per table, so events decoded before
the cut are still collected. Any other decode failure is raised as
DemoParseError.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from pathlib import Path

from cs2replay.collector.assembler import assemble_match
from cs2replay.collector.rounds import RoundCollector
from cs2replay.core.config import Cs2ReplayConfig, get_config
from cs2replay.errors import DemoParseError, UnexpectedEndOfDemo
from cs2replay.events import EventSource, FrameDone, GameState
from cs2replay.models import Match

logger = logging.getLogger(__name__)

# Called after each processed frame with a value between 0 and 1
ProgressFunc = Callable[[float], None]


def generate_match_id(nbytes: int = 2) -> str:
    """Short random hex id used for match files and job keys."""
    return secrets.token_hex(nbytes)


def collect_match(
    source: EventSource,
    match_id: str,
    on_progress: ProgressFunc | None = None,
    config: Cs2ReplayConfig | None = None,
) -> Match:
    """
    Feed every event of a source through a fresh collector and assemble the match.

    Args:
        source: Ordered event stream for one demo
        match_id: Id written into the match
        on_progress: Optional progress callback, invoked after each frame
        config: Configuration (defaults to the global config)

    Returns:
        The assembled Match

    Raises:
        DemoParseError: The stream failed for any reason other than ending early
    """
    config = config or get_config()
    match = Match(id=match_id)
    collector = RoundCollector(match, config.collector)

    last_state: GameState | None = None
    progress = 0.0
    events_seen = 0

    try:
        for event, state in source.events():
            last_state = state
            events_seen += 1
            collector.dispatch(event, state)

            if on_progress is not None and isinstance(event, FrameDone):
                # Never report going backwards
                progress = max(progress, min(max(state.progress, 0.0), 1.0))
                on_progress(progress)
    except UnexpectedEndOfDemo as e:
        logger.warning(f"Demo ended unexpectedly after {events_seen} events, keeping partial result: {e}")
    except DemoParseError:
        raise
    except Exception as e:
        raise DemoParseError(f"parsing demo: {e}") from e

    collector.flush()
    return assemble_match(match, last_state)


def parse_demo(
    demo_path: str | Path,
    match_id: str | None = None,
    on_progress: ProgressFunc | None = None,
    config: Cs2ReplayConfig | None = None,
) -> Match:
    """
    Parse a .dem file into a Match using demoparser2.

    Args:
        demo_path: Path to the demo
        match_id: Id for the match (random short hex if omitted)
        on_progress: Optional progress callback
        config: Configuration (defaults to the global config)
    """
    from cs2replay.sources.demoparser2_source import Demoparser2Source

    config = config or get_config()
    match_id = match_id or generate_match_id(config.jobs.id_bytes)
    source = Demoparser2Source(demo_path, config.parser)
    return collect_match(source, match_id, on_progress=on_progress, config=config)
