"""Data models for the Feed Comparison Engine."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class Source(str, Enum):
    """The two feeds whose delivery speed is being compared."""

    REFERENCE = "reference"  # gateway / Cloud API
    COMPARATOR = "comparator"  # EVM node


class Classification(str, Enum):
    """Window classification of a single arrival."""

    LEAD = "lead"
    CORRELATE = "correlate"
    TRAIL = "trail"


class FilterVerdict(str, Enum):
    """Outcome of the content filter for one object."""

    ACCEPT = "accept"
    LOW_FEE = "low_fee"
    ADDRESS = "address"


@dataclass
class HashEntry:
    """
    First-seen timestamps of one hash within the active interval.

    Each timestamp is written at most once; later sightings from the
    same source are ignored.
    """

    key: str
    reference_first_seen: Optional[datetime] = None
    comparator_first_seen: Optional[datetime] = None

    def set_if_unset(self, source: Source, timestamp: datetime) -> bool:
        """Record the first sighting for a source. Returns True if it was stored."""
        if source is Source.REFERENCE:
            if self.reference_first_seen is None:
                self.reference_first_seen = timestamp
                return True
        elif self.comparator_first_seen is None:
            self.comparator_first_seen = timestamp
            return True
        return False

    @property
    def seen_by_both(self) -> bool:
        return (
            self.reference_first_seen is not None
            and self.comparator_first_seen is not None
        )

    @property
    def delta(self) -> Optional[float]:
        """Reference time minus comparator time, in seconds (negative = reference first)."""
        if not self.seen_by_both:
            return None
        return (self.reference_first_seen - self.comparator_first_seen).total_seconds()


@dataclass(frozen=True)
class Window:
    """Boundaries of the active comparison window."""

    open_at: datetime
    close_at: datetime

    def is_lead(self, timestamp: datetime) -> bool:
        return timestamp < self.open_at


@dataclass
class FeedMessage:
    """One raw notification (or transport failure) read from a feed."""

    source: Source
    data: Union[bytes, str, None]
    received_at: datetime
    error: Optional[Exception] = None


@dataclass
class ContentResult:
    """Outcome of a content lookup issued by the enrichment pool."""

    key: str
    data: Union[bytes, str, None]
    seen_at: datetime
    error: Optional[Exception] = None


@dataclass
class Contents:
    """The content fields used by the content filter."""

    gas_price: Optional[int] = None  # wei
    to: Optional[str] = None


@dataclass
class Notification:
    """Hash (and optional inline contents) extracted from a feed message."""

    key: str
    contents: Optional[Contents] = None


@dataclass
class IntervalStats:
    """Statistics for one completed measurement interval."""

    reference_first: int = 0
    comparator_first: int = 0
    reference_first_total_delta: float = 0.0  # seconds
    comparator_first_total_delta: float = 0.0  # seconds
    new_from_reference_first: int = 0
    new_from_comparator_first: int = 0
    total_from_reference: int = 0
    total_from_comparator: int = 0
    low_fee_ignored: int = 0
    high_delta_ignored: int = 0

    @property
    def seen_by_both(self) -> int:
        """Head-to-head comparisons that produced a winner."""
        return self.reference_first + self.comparator_first

    @property
    def total_seen(self) -> int:
        return self.new_from_reference_first + self.new_from_comparator_first

    @property
    def reference_first_avg_delta_ms(self) -> int:
        if self.reference_first == 0:
            return 0
        return round(self.reference_first_total_delta / self.reference_first * 1000)

    @property
    def comparator_first_avg_delta_ms(self) -> int:
        if self.comparator_first == 0:
            return 0
        return round(self.comparator_first_total_delta / self.comparator_first * 1000)

    @property
    def reference_first_pct(self) -> int:
        if self.seen_by_both == 0:
            return 0
        return int(self.reference_first / self.seen_by_both * 100)
