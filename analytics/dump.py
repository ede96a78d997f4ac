"""Dump Sink - per-key CSV records and missing-hash lists for offline analysis."""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, TextIO, Union

from comparison.stats import format_timestamp

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DumpSink:
    """
    Writes the report records of each interval to disk.

    all_path receives one CSV row per key (reference time, comparator time,
    delta in ms); missing_path receives one line per key the comparator saw
    and the reference never did. Either file is optional.
    """

    def __init__(
        self,
        all_path: Optional[PathLike] = None,
        missing_path: Optional[PathLike] = None,
        header: Sequence[str] = ("TxHash", "BloXRoute Time", "Evm Time", "Time Diff"),
    ):
        self.all_path = Path(all_path) if all_path else None
        self.missing_path = Path(missing_path) if missing_path else None
        self.header = list(header)

        self._all_file: Optional[TextIO] = None
        self._missing_file: Optional[TextIO] = None
        self._writer = None

    def open(self) -> "DumpSink":
        """Create (truncate) the dump files and write the CSV header."""
        if self.all_path is not None:
            self._all_file = self.all_path.open("w", newline="")
            self._writer = csv.writer(self._all_file)
            self._writer.writerow(self.header)
            logger.info(f"Dumping all hashes to {self.all_path}")
        if self.missing_path is not None:
            self._missing_file = self.missing_path.open("w")
            logger.info(f"Dumping missing hashes to {self.missing_path}")
        return self

    def write_record(
        self,
        key: str,
        reference_time: Optional[datetime],
        comparator_time: Optional[datetime],
        delta_ms: Optional[int],
    ) -> None:
        if self._writer is None:
            return
        self._writer.writerow([
            key,
            format_timestamp(reference_time) if reference_time else "0",
            format_timestamp(comparator_time) if comparator_time else "0",
            delta_ms if delta_ms is not None else "0",
        ])

    def write_missing_key(self, key: str) -> None:
        if self._missing_file is None:
            return
        self._missing_file.write(f"{key}\n")

    def close(self) -> None:
        for handle in (self._all_file, self._missing_file):
            if handle is not None:
                handle.close()
        self._all_file = None
        self._missing_file = None
        self._writer = None

    def __enter__(self) -> "DumpSink":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
