"""Exception types raised while turning a demo into a match recording."""


class Cs2ReplayError(Exception):
    """Base class for cs2replay errors."""


class DemoParseError(Cs2ReplayError):
    """The demo could not be decoded. Terminal for the parse that raised it."""


class UnexpectedEndOfDemo(DemoParseError):
    """
    The demo stream stopped before its end marker.

    Truncated uploads and demos recorded during a server crash end this way;
    everything collected up to that point is still usable.
    """
