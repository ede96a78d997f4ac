"""Comparison Layer - window classification, correlation and latency statistics."""

from .config import ComparisonConfig
from .controller import IntervalController
from .engine import FeedComparisonEngine
from .enrichment import ContentEnrichmentPool
from .errors import ConfigError, FeedCompareError, ParseError, TransportError
from .models import Classification, HashEntry, IntervalStats, Source, Window
from .stats import StatisticsAggregator
from .table import CorrelationTable
from .variants import BLOCKS, TRANSACTIONS, VARIANTS, FeedVariant

__all__ = [
    "ComparisonConfig",
    "IntervalController",
    "FeedComparisonEngine",
    "ContentEnrichmentPool",
    "FeedCompareError",
    "TransportError",
    "ParseError",
    "ConfigError",
    "Classification",
    "HashEntry",
    "IntervalStats",
    "Source",
    "Window",
    "StatisticsAggregator",
    "CorrelationTable",
    "FeedVariant",
    "TRANSACTIONS",
    "BLOCKS",
    "VARIANTS",
]
