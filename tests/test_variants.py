"""Tests for wire parsing, content filtering and report rendering."""

import json

import pytest

from comparison.errors import ParseError
from comparison.models import Contents, FilterVerdict, IntervalStats, Source
from comparison.variants import (
    BLOCKS,
    TRANSACTIONS,
    VARIANTS,
    ContentFilter,
    parse_block,
    parse_block_lookup,
    parse_gas_price,
    parse_gateway_tx,
    parse_node_tx,
    parse_tx_lookup,
)


def notification(result) -> str:
    return json.dumps({"jsonrpc": "2.0", "method": "subscribe", "params": {"result": result}})


# ============================================================================
# Wire parsers
# ============================================================================

class TestWireParsers:

    def test_node_tx(self):
        parsed = parse_node_tx(notification("0xabc"))

        assert parsed.key == "0xabc"
        assert parsed.contents is None

    def test_gateway_tx_with_contents(self):
        parsed = parse_gateway_tx(notification({
            "txHash": "0xabc",
            "txContents": {"gasPrice": "0x3b9aca00", "to": "0xDeAdBeEf"},
        }))

        assert parsed.key == "0xabc"
        assert parsed.contents == Contents(gas_price=1_000_000_000, to="0xdeadbeef")

    def test_gateway_tx_hash_only(self):
        parsed = parse_gateway_tx(notification({"txHash": "0xabc"}))

        assert parsed.contents is None

    def test_block(self):
        parsed = parse_block(notification({"hash": "0xb10c", "header": {"number": "0x1"}}))

        assert parsed.key == "0xb10c"

    def test_variant_dispatches_by_source(self):
        data = notification("0xabc")

        assert TRANSACTIONS.parse(Source.COMPARATOR, data).key == "0xabc"
        with pytest.raises(ParseError):
            TRANSACTIONS.parse(Source.REFERENCE, data)

    @pytest.mark.parametrize("data", [
        "not json",
        "[1, 2]",
        json.dumps({"params": {}}),
        notification({"txHash": ""}),
        notification(None),
    ])
    def test_malformed_messages(self, data):
        with pytest.raises(ParseError):
            parse_gateway_tx(data)

    def test_block_missing_hash(self):
        with pytest.raises(ParseError):
            parse_block(notification({"header": {}}))


class TestLookupParsers:

    def test_tx_lookup(self):
        contents = parse_tx_lookup(json.dumps({
            "id": 1, "result": {"hash": "0xabc", "gasPrice": "0x10", "to": "0xAB"},
        }))

        assert contents == Contents(gas_price=16, to="0xab")

    def test_contract_creation_has_no_destination(self):
        contents = parse_tx_lookup(json.dumps({"id": 1, "result": {"gasPrice": "0x10", "to": None}}))

        assert contents.to is None

    def test_unknown_tx(self):
        assert parse_tx_lookup(json.dumps({"id": 1, "result": None})) is None

    def test_block_lookup(self):
        assert parse_block_lookup(json.dumps({"id": 1, "result": {"hash": "0xb10c"}})) == Contents()
        assert parse_block_lookup(json.dumps({"id": 1, "result": None})) is None

    def test_gas_price_formats(self):
        assert parse_gas_price("0x3b9aca00") == 1_000_000_000
        assert parse_gas_price("1000") == 1000
        with pytest.raises(ParseError):
            parse_gas_price("0xzz")


# ============================================================================
# Content filter
# ============================================================================

class TestContentFilter:

    def test_inactive_filter_accepts_everything(self):
        content_filter = ContentFilter()

        assert content_filter.check(Contents(gas_price=1, to="0xaa")) is FilterVerdict.ACCEPT

    def test_low_fee(self):
        content_filter = ContentFilter(min_gas_price_wei=5e9)

        assert content_filter.check(Contents(gas_price=4_000_000_000)) is FilterVerdict.LOW_FEE
        assert content_filter.check(Contents(gas_price=5_000_000_000)) is FilterVerdict.ACCEPT

    def test_address_allow_list_is_case_insensitive(self):
        content_filter = ContentFilter(addresses={"0xAbC"})

        assert content_filter.check(Contents(to="0xabc")) is FilterVerdict.ACCEPT
        assert content_filter.check(Contents(to="0xdef")) is FilterVerdict.ADDRESS

    def test_missing_fields_are_not_filtered(self):
        content_filter = ContentFilter(min_gas_price_wei=5e9, addresses={"0xabc"})

        assert content_filter.check(Contents()) is FilterVerdict.ACCEPT


# ============================================================================
# Reports
# ============================================================================

class TestReports:

    @pytest.fixture
    def stats(self):
        return IntervalStats(
            reference_first=3,
            comparator_first=1,
            reference_first_total_delta=0.6,
            comparator_first_total_delta=0.4,
            new_from_reference_first=4,
            new_from_comparator_first=2,
            total_from_reference=5,
            total_from_comparator=6,
            low_fee_ignored=7,
            high_delta_ignored=1,
        )

    def test_tx_report(self, stats):
        text = TRANSACTIONS.render(stats, False)

        assert "Number of transactions: 4\n" in text
        assert "Percentage of transactions seen first from gateway: 75%\n" in text
        assert "Average time difference for transactions received first from gateway (ms): 200\n" in text
        assert "Number of low fee tx ignored: 7\n" in text
        assert "high delta" not in text

    def test_tx_report_verbose(self, stats):
        text = TRANSACTIONS.render(stats, True)

        assert "Number of high delta tx ignored: 1\n" in text
        assert "Total number of transactions seen: 6\n" in text

    def test_block_report(self, stats):
        text = BLOCKS.render(stats, False)

        assert "Total blocks from evm node: 6\n" in text
        assert "Number of blocks received from Evm node first: 1\n" in text
        assert "Average time difference for blocks received first from Evm node (ms): 400\n" in text

    def test_variant_registry(self):
        assert VARIANTS == {"transactions": TRANSACTIONS, "blocks": BLOCKS}
        assert BLOCKS.lookup_params("0xb10c") == ["0xb10c", True]
        assert TRANSACTIONS.lookup_params("0xabc") == ["0xabc"]
        assert BLOCKS.missing_hashes_file == "missing_block_hashes.txt"
