"""Event sources that replay a decoded demo as (event, state) pairs."""

from cs2replay.sources.demoparser2_source import Demoparser2Source

__all__ = ["Demoparser2Source"]
