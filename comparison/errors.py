"""Exceptions raised by the feed comparison engine."""


class FeedCompareError(Exception):
    """Base class for feed comparison failures."""


class TransportError(FeedCompareError):
    """A socket or RPC failure while reading a feed or fetching contents."""


class ParseError(FeedCompareError):
    """A feed notification or RPC response that does not match its schema."""


class ConfigError(FeedCompareError):
    """Invalid or contradictory configuration, raised before any task starts."""
