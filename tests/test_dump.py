"""Tests for the dump files sink."""

import csv

from datetime import datetime, timezone, timedelta

from analytics.dump import DumpSink
from comparison.models import HashEntry
from comparison.stats import StatisticsAggregator
from comparison.variants import BLOCKS


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestDumpSink:

    def test_all_hashes_csv(self, tmp_path):
        path = tmp_path / "all_hashes.csv"

        with DumpSink(all_path=path) as sink:
            sink.write_record("0xaa", T0, T0 + timedelta(milliseconds=1500), -1500)
            sink.write_record("0xbb", None, T0, None)
            sink.write_missing_key("0xbb")

        rows = list(csv.reader(path.read_text().splitlines()))
        assert rows[0] == ["TxHash", "BloXRoute Time", "Evm Time", "Time Diff"]
        assert rows[1] == ["0xaa", "2024-01-01T00:00:00.000", "2024-01-01T00:00:01.500", "-1500"]
        assert rows[2] == ["0xbb", "0", "2024-01-01T00:00:00.000", "0"]

    def test_missing_hashes(self, tmp_path):
        path = tmp_path / "missing_hashes.txt"

        with DumpSink(missing_path=path) as sink:
            sink.write_missing_key("0xaa")
            sink.write_missing_key("0xbb")
            sink.write_record("0xcc", T0, T0, 0)

        assert path.read_text() == "0xaa\n0xbb\n"

    def test_block_header_and_aggregator(self, tmp_path):
        all_path = tmp_path / BLOCKS.all_hashes_file
        missing_path = tmp_path / BLOCKS.missing_hashes_file
        sink = DumpSink(all_path, missing_path, header=BLOCKS.csv_header).open()

        StatisticsAggregator(ignore_delta=5, sink=sink).compute({
            "0xb1": HashEntry("0xb1", T0, T0 + timedelta(seconds=1)),
            "0xb2": HashEntry("0xb2", None, T0),
        })
        sink.close()

        rows = list(csv.reader(all_path.read_text().splitlines()))
        assert rows[0][0] == "BkHash"
        assert [row[0] for row in rows[1:]] == ["0xb1", "0xb2"]
        assert rows[1][3] == "-1000"
        assert missing_path.read_text() == "0xb2\n"

    def test_nothing_selected(self, tmp_path):
        sink = DumpSink().open()

        sink.write_record("0xaa", T0, T0, 0)
        sink.write_missing_key("0xaa")
        sink.close()

        assert list(tmp_path.iterdir()) == []
