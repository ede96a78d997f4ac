"""Tests for the Statistics Aggregator."""

import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import MagicMock, call

from comparison.models import HashEntry, IntervalStats
from comparison.stats import StatisticsAggregator, format_timestamp


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def entry(key, reference=None, comparator=None) -> HashEntry:
    return HashEntry(
        key=key,
        reference_first_seen=at(reference) if reference is not None else None,
        comparator_first_seen=at(comparator) if comparator is not None else None,
    )


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def sink():
    return MagicMock()


@pytest.fixture
def aggregator(sink):
    return StatisticsAggregator(ignore_delta=5, sink=sink)


# ============================================================================
# Scenarios
# ============================================================================

class TestScenarios:

    def test_reference_first_pair(self, aggregator):
        """H1: reference at 10s, comparator at 12s."""
        stats = aggregator.compute({"H1": entry("H1", reference=10, comparator=12)})

        assert stats.reference_first == 1
        assert stats.comparator_first == 0
        assert stats.reference_first_total_delta == pytest.approx(2.0)
        assert stats.reference_first_avg_delta_ms == 2000
        assert stats.reference_first_pct == 100
        assert stats.total_from_reference == 1
        assert stats.total_from_comparator == 1

    def test_high_delta_pair_counts_toward_totals_only(self, aggregator):
        """H3: delta 8s with ignore_delta 5s."""
        high_delta = set()
        stats = aggregator.compute(
            {"H3": entry("H3", reference=20, comparator=12)}, high_delta=high_delta
        )

        assert stats.seen_by_both == 0
        assert stats.comparator_first == 0
        assert stats.comparator_first_avg_delta_ms == 0
        assert stats.total_from_reference == 1
        assert stats.total_from_comparator == 1
        assert stats.high_delta_ignored == 1
        assert high_delta == {"H3"}

    def test_empty_snapshot(self, aggregator, sink):
        stats = aggregator.compute({})

        assert stats == IntervalStats()
        assert stats.reference_first_pct == 0
        sink.write_record.assert_not_called()


class TestAggregation:

    def test_comparator_first(self, aggregator):
        stats = aggregator.compute({"0xaa": entry("0xaa", reference=11.5, comparator=10)})

        assert stats.comparator_first == 1
        assert stats.new_from_comparator_first == 1
        assert stats.comparator_first_avg_delta_ms == 1500

    def test_equal_timestamps_count_toward_totals_only(self, aggregator):
        stats = aggregator.compute({"0xaa": entry("0xaa", reference=10, comparator=10)})

        assert stats.seen_by_both == 0
        assert stats.total_from_reference == 1
        assert stats.total_from_comparator == 1

    def test_single_source_entries(self, aggregator):
        stats = aggregator.compute({
            "0xaa": entry("0xaa", reference=10),
            "0xbb": entry("0xbb", comparator=11),
        })

        assert stats.new_from_reference_first == 1
        assert stats.new_from_comparator_first == 1
        assert stats.total_from_reference == 1
        assert stats.total_from_comparator == 1
        assert stats.total_seen == 2
        assert stats.seen_by_both == 0

    def test_percentage_and_averages(self, aggregator):
        stats = aggregator.compute({
            "0x01": entry("0x01", reference=10, comparator=10.1),
            "0x02": entry("0x02", reference=10, comparator=10.3),
            "0x03": entry("0x03", reference=10, comparator=10.2),
            "0x04": entry("0x04", reference=10.4, comparator=10),
        })

        assert stats.reference_first == 3
        assert stats.comparator_first == 1
        assert stats.reference_first_pct == 75
        assert stats.reference_first_avg_delta_ms == 200
        assert stats.comparator_first_avg_delta_ms == 400

    def test_low_fee_count(self, aggregator):
        stats = aggregator.compute({}, low_fee={"0xaa", "0xbb"})

        assert stats.low_fee_ignored == 2


class TestSink:

    def test_records_and_missing_keys(self, aggregator, sink):
        aggregator.compute({
            "0xaa": entry("0xaa", reference=10, comparator=12),
            "0xbb": entry("0xbb", comparator=11),
            "0xcc": entry("0xcc", reference=13),
        })

        sink.write_record.assert_has_calls([
            call("0xaa", at(10), at(12), -2000),
            call("0xbb", None, at(11), None),
            call("0xcc", at(13), None, None),
        ])
        sink.write_missing_key.assert_called_once_with("0xbb")

    def test_high_delta_pair_is_still_recorded(self, aggregator, sink):
        aggregator.compute({"H3": entry("H3", reference=20, comparator=12)})

        sink.write_record.assert_called_once_with("H3", at(20), at(12), 8000)

    @pytest.mark.parametrize("milliseconds", [1001, 1003, 1005, 4999])
    def test_delta_ms_is_exact(self, aggregator, sink, milliseconds):
        later = T0 + timedelta(milliseconds=milliseconds)
        aggregator.compute({
            "0xaa": HashEntry("0xaa", reference_first_seen=T0, comparator_first_seen=later),
            "0xbb": HashEntry("0xbb", reference_first_seen=later, comparator_first_seen=T0),
        })

        sink.write_record.assert_has_calls([
            call("0xaa", T0, later, -milliseconds),
            call("0xbb", later, T0, milliseconds),
        ])

    def test_sub_millisecond_delta_truncates_toward_zero(self, aggregator, sink):
        later = T0 + timedelta(microseconds=1999)
        aggregator.compute({"0xaa": HashEntry("0xaa", T0, later)})

        sink.write_record.assert_called_once_with("0xaa", T0, later, -1)

    def test_sink_error_does_not_abort(self, aggregator, sink):
        sink.write_record.side_effect = OSError("disk full")

        stats = aggregator.compute({"0xaa": entry("0xaa", reference=10, comparator=12)})

        assert stats.reference_first == 1

    def test_no_sink(self):
        stats = StatisticsAggregator(ignore_delta=5).compute(
            {"0xbb": entry("0xbb", comparator=11)}
        )

        assert stats.new_from_comparator_first == 1


def test_format_timestamp():
    assert format_timestamp(at(1.2345)) == "2024-01-01T00:00:01.234"
