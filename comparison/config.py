"""Configuration for the Feed Comparison Engine."""

import os
from dataclasses import dataclass, field
from typing import Optional, Set

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()

WEI_PER_GWEI = 10 ** 9

DUMP_ALL = "ALL"
DUMP_MISSING = "MISSING"
DUMP_CHOICES = (DUMP_ALL, DUMP_MISSING, f"{DUMP_ALL},{DUMP_MISSING}")


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name, "")
    return float(value) if value else None


def _env_addresses(name: str) -> Set[str]:
    return parse_addresses(os.getenv(name, ""))


def parse_addresses(value: str) -> Set[str]:
    """Parse a comma separated address allow-list (case-insensitive)."""
    return {addr.strip() for addr in value.lower().split(",") if addr.strip()}


@dataclass
class ComparisonConfig:
    """Timing, filtering and reporting parameters for one comparison run."""

    # Interval timing (seconds)
    lead_time: float = field(default_factory=lambda: float(os.getenv("LEAD_TIME", "60")))
    interval: float = field(default_factory=lambda: float(os.getenv("INTERVAL", "60")))
    trail_time: float = field(default_factory=lambda: float(os.getenv("TRAIL_TIME", "60")))
    num_intervals: int = field(default_factory=lambda: int(os.getenv("NUM_INTERVALS", "1")))

    # Pairs further apart than this are not treated as a race (seconds)
    ignore_delta: float = field(default_factory=lambda: float(os.getenv("IGNORE_DELTA", "5")))

    # Content filtering
    exclude_contents: bool = field(
        default_factory=lambda: os.getenv("EXCLUDE_CONTENTS", "false").lower() == "true"
    )
    min_gas_price_gwei: Optional[float] = field(default_factory=lambda: _env_float("MIN_GAS_PRICE"))
    addresses: Set[str] = field(default_factory=lambda: _env_addresses("ADDRESSES"))

    # Content enrichment pool
    enrichment_workers: int = 4
    enrichment_queue_size: int = 8192

    # Engine loop
    feed_queue_size: int = 1024
    poll_interval: float = 0.001

    # Reporting
    dump: str = field(default_factory=lambda: os.getenv("DUMP", ""))
    verbose: bool = False

    @property
    def filtering_requested(self) -> bool:
        return self.min_gas_price_gwei is not None or bool(self.addresses)

    @property
    def min_gas_price_wei(self) -> Optional[float]:
        if self.min_gas_price_gwei is None:
            return None
        return self.min_gas_price_gwei * WEI_PER_GWEI

    @property
    def dump_all(self) -> bool:
        return DUMP_ALL in self.dump.upper().split(",")

    @property
    def dump_missing(self) -> bool:
        return DUMP_MISSING in self.dump.upper().split(",")

    def validate(self) -> None:
        """Raise ConfigError for contradictory or out-of-range settings."""
        if self.filtering_requested and self.exclude_contents:
            raise ConfigError(
                "if filtering by minimum gas price or addresses, "
                "contents must not be excluded"
            )
        if self.lead_time < 0 or self.trail_time < 0:
            raise ConfigError("lead time and trail time must not be negative")
        if self.interval <= 0:
            raise ConfigError("interval must be positive")
        if self.num_intervals < 1:
            raise ConfigError("number of intervals must be at least 1")
        if self.ignore_delta < 0:
            raise ConfigError("ignore delta must not be negative")
        if self.enrichment_workers < 1:
            raise ConfigError("at least one enrichment worker is required")
        if self.dump and self.dump.upper() not in DUMP_CHOICES:
            raise ConfigError(
                "possible values for --dump are "
                + ", ".join(f'"{choice}"' for choice in DUMP_CHOICES)
            )
