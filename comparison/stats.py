"""Statistics Aggregator - end-of-interval latency statistics."""

import logging
from datetime import datetime, timedelta
from typing import Mapping, Optional, Protocol, Set

from .models import HashEntry, IntervalStats

logger = logging.getLogger(__name__)


def format_timestamp(timestamp: datetime) -> str:
    """Millisecond precision timestamp used in reports and dumps."""
    return timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]


class ReportSink(Protocol):
    """Receives one call per key while a report is computed."""

    def write_record(
        self,
        key: str,
        reference_time: Optional[datetime],
        comparator_time: Optional[datetime],
        delta_ms: Optional[int],
    ) -> None: ...

    def write_missing_key(self, key: str) -> None: ...


class StatisticsAggregator:
    """
    Computes the head-to-head statistics of one interval from a table snapshot.

    Policy for pairs whose delta exceeds the ignore threshold: they count
    toward each source's total and are written to the record sink, but are
    excluded from the head-to-head tally and the averages. Both the
    transaction and the block variant use this policy.
    """

    def __init__(self, ignore_delta: float, sink: Optional[ReportSink] = None):
        """
        Args:
            ignore_delta: Maximum |reference - comparator| in seconds for a race
            sink: Optional record / missing-key sink
        """
        self.ignore_delta = ignore_delta
        self.sink = sink

    def compute(
        self,
        snapshot: Mapping[str, HashEntry],
        low_fee: Optional[Set[str]] = None,
        high_delta: Optional[Set[str]] = None,
    ) -> IntervalStats:
        """
        Aggregate a snapshot into IntervalStats.

        Args:
            snapshot: Read-only table copy taken at the interval boundary
            low_fee: Keys rejected by the price filter during the interval
            high_delta: Set that receives keys beyond the ignore threshold

        Returns:
            IntervalStats for the interval
        """
        stats = IntervalStats()
        if high_delta is None:
            high_delta = set()

        for key, entry in snapshot.items():
            reference_time = entry.reference_first_seen
            comparator_time = entry.comparator_first_seen

            if reference_time is None and comparator_time is None:
                continue

            if reference_time is None:
                self._write_missing(key)
                self._write_record(key, None, comparator_time, None)
                stats.new_from_comparator_first += 1
                stats.total_from_comparator += 1
                continue

            if comparator_time is None:
                self._write_record(key, reference_time, None, None)
                stats.new_from_reference_first += 1
                stats.total_from_reference += 1
                continue

            delta = entry.delta
            stats.total_from_reference += 1
            stats.total_from_comparator += 1
            delta_ms = int((reference_time - comparator_time) / timedelta(milliseconds=1))
            self._write_record(key, reference_time, comparator_time, delta_ms)

            if abs(delta) > self.ignore_delta:
                high_delta.add(key)
                continue

            if delta < 0:
                stats.new_from_reference_first += 1
                stats.reference_first += 1
                stats.reference_first_total_delta += -delta
            elif delta > 0:
                stats.new_from_comparator_first += 1
                stats.comparator_first += 1
                stats.comparator_first_total_delta += delta

        stats.low_fee_ignored = len(low_fee or ())
        stats.high_delta_ignored = len(high_delta)
        return stats

    def _write_record(self, key, reference_time, comparator_time, delta_ms) -> None:
        if self.sink is None:
            return
        try:
            self.sink.write_record(key, reference_time, comparator_time, delta_ms)
        except OSError as e:
            logger.error(f"cannot add hash {key} to all hashes dump: {e}")

    def _write_missing(self, key: str) -> None:
        if self.sink is None:
            return
        try:
            self.sink.write_missing_key(key)
        except OSError as e:
            logger.error(f"cannot add hash {key} to missing hashes dump: {e}")
