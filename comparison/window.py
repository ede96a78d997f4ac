"""Window Classifier - lead / active / trail decision for each arrival."""

from datetime import datetime, timedelta
from typing import AbstractSet

from .models import Classification, Window
from .table import CorrelationTable


def next_window(now: datetime, lead_time: float, interval: float) -> Window:
    """Window that opens after the lead period and lasts one interval."""
    open_at = now + timedelta(seconds=lead_time)
    return Window(open_at=open_at, close_at=open_at + timedelta(seconds=interval))


def classify(
    key: str,
    timestamp: datetime,
    window: Window,
    lead_seen: AbstractSet[str],
    trail_seen: AbstractSet[str],
    table: CorrelationTable,
) -> Classification:
    """
    Decide how an arrival is treated. Does not mutate anything.

    An entry already in the table takes precedence over the close check,
    so the second source of a key first seen just before the window closed
    is still correlated.
    """
    if window.is_lead(timestamp):
        return Classification.LEAD

    if key in table:
        return Classification.CORRELATE

    if timestamp < window.close_at and key not in trail_seen and key not in lead_seen:
        return Classification.CORRELATE

    return Classification.TRAIL
