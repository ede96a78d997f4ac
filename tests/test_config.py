"""Tests for comparison and feed configuration."""

import pytest

from comparison.config import ComparisonConfig, parse_addresses
from comparison.errors import ConfigError
from ingestion.config import FeedConfig


class TestComparisonConfig:

    def test_defaults(self, monkeypatch):
        for name in ("LEAD_TIME", "INTERVAL", "TRAIL_TIME", "NUM_INTERVALS",
                     "IGNORE_DELTA", "MIN_GAS_PRICE", "ADDRESSES", "DUMP", "EXCLUDE_CONTENTS"):
            monkeypatch.delenv(name, raising=False)

        config = ComparisonConfig()

        assert config.lead_time == 60
        assert config.interval == 60
        assert config.trail_time == 60
        assert config.num_intervals == 1
        assert config.ignore_delta == 5
        assert config.min_gas_price_gwei is None
        assert config.addresses == set()
        assert not config.exclude_contents
        config.validate()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("INTERVAL", "30")
        monkeypatch.setenv("MIN_GAS_PRICE", "2.5")
        monkeypatch.setenv("ADDRESSES", "0xAA, 0xbb")

        config = ComparisonConfig()

        assert config.interval == 30
        assert config.min_gas_price_wei == 2.5e9
        assert config.addresses == {"0xaa", "0xbb"}

    def test_filtering_with_excluded_contents(self):
        config = ComparisonConfig(min_gas_price_gwei=1.0, exclude_contents=True)

        with pytest.raises(ConfigError):
            config.validate()

    @pytest.mark.parametrize("overrides", [
        {"interval": 0},
        {"lead_time": -1},
        {"trail_time": -1},
        {"num_intervals": 0},
        {"ignore_delta": -0.5},
        {"enrichment_workers": 0},
        {"dump": "EVERYTHING"},
    ])
    def test_out_of_range(self, overrides):
        settings = {"min_gas_price_gwei": None, "addresses": set(), "dump": ""}
        settings.update(overrides)
        config = ComparisonConfig(**settings)

        with pytest.raises(ConfigError):
            config.validate()

    @pytest.mark.parametrize("dump,dump_all,dump_missing", [
        ("", False, False),
        ("ALL", True, False),
        ("MISSING", False, True),
        ("ALL,MISSING", True, True),
    ])
    def test_dump_selection(self, dump, dump_all, dump_missing):
        config = ComparisonConfig(dump=dump)

        assert config.dump_all is dump_all
        assert config.dump_missing is dump_missing

    def test_parse_addresses(self):
        assert parse_addresses("") == set()
        assert parse_addresses("0xAB,,0xcd ") == {"0xab", "0xcd"}


class TestFeedConfig:

    def test_reference_uri(self):
        config = FeedConfig(gateway_ws_uri="ws://gw", cloud_api_ws_uri="wss://cloud")

        assert config.reference_uri == "ws://gw"
        config.use_cloud_api = True
        assert config.reference_uri == "wss://cloud"

    def test_lookup_defaults_to_node(self):
        config = FeedConfig(node_ws_uri="ws://node:8546", lookup_uri="")

        assert config.content_lookup_uri == "ws://node:8546"

    def test_auth_header(self):
        assert FeedConfig(auth_header="").reference_headers == {}
        assert FeedConfig(auth_header="abc").reference_headers == {"Authorization": "abc"}
