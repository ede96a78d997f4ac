"""Analytics Layer - dump files for offline analysis of each interval."""

from .dump import DumpSink

__all__ = [
    "DumpSink",
]
