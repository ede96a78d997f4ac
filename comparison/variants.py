"""Transaction and block instantiations of the generic comparison engine."""

import json
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple

from .errors import ParseError
from .models import Contents, FilterVerdict, IntervalStats, Notification, Source


def load_message(data: Any) -> dict:
    """Decode one JSON notification or RPC response."""
    try:
        message = json.loads(data)
    except (TypeError, ValueError) as e:
        raise ParseError(f"failed to unmarshal message: {e}") from e
    if not isinstance(message, dict):
        raise ParseError(f"unexpected message type: {type(message).__name__}")
    return message


def _field(obj: Any, *path: str) -> Any:
    for name in path:
        if not isinstance(obj, dict) or name not in obj:
            raise ParseError(f"missing field {'.'.join(path)}")
        obj = obj[name]
    return obj


def _hash(value: Any, path: str) -> str:
    if not isinstance(value, str) or not value:
        raise ParseError(f"invalid hash at {path}: {value!r}")
    return value


def parse_gas_price(value: str) -> int:
    """Parse a gas price given as a 0x-prefixed hex or decimal string."""
    try:
        return int(value, 0)
    except (TypeError, ValueError) as e:
        raise ParseError(f"cannot parse gas price {value!r}: {e}") from e


def _tx_contents(raw: Any) -> Contents:
    if not isinstance(raw, dict):
        raise ParseError(f"unexpected transaction contents: {raw!r}")
    gas_price = raw.get("gasPrice")
    to = raw.get("to")
    return Contents(
        gas_price=parse_gas_price(gas_price) if gas_price is not None else None,
        to=to.lower() if isinstance(to, str) else None,
    )


# ============================================================================
# Wire parsers
# ============================================================================

def parse_gateway_tx(data: Any) -> Notification:
    """params.result.txHash with optional params.result.txContents."""
    result = _field(load_message(data), "params", "result")
    key = _hash(_field(result, "txHash"), "params.result.txHash")
    raw_contents = result.get("txContents")
    contents = _tx_contents(raw_contents) if raw_contents is not None else None
    return Notification(key=key, contents=contents)


def parse_node_tx(data: Any) -> Notification:
    """params.result is the bare transaction hash."""
    return Notification(key=_hash(_field(load_message(data), "params", "result"), "params.result"))


def parse_block(data: Any) -> Notification:
    """params.result.hash, same shape for gateway and node block feeds."""
    return Notification(
        key=_hash(_field(load_message(data), "params", "result", "hash"), "params.result.hash")
    )


def parse_tx_lookup(data: Any) -> Optional[Contents]:
    """eth_getTransactionByHash response; None when the node does not know the tx."""
    result = load_message(data).get("result")
    if result is None:
        return None
    return _tx_contents(result)


def parse_block_lookup(data: Any) -> Optional[Contents]:
    """eth_getBlockByHash response; None when the node does not know the block."""
    result = load_message(data).get("result")
    if result is None:
        return None
    if not isinstance(result, dict):
        raise ParseError(f"unexpected block contents: {result!r}")
    return Contents()


# ============================================================================
# Content filter
# ============================================================================

class ContentFilter:
    """Minimum gas price and destination allow-list filter."""

    def __init__(self, min_gas_price_wei: Optional[float] = None, addresses: Optional[Set[str]] = None):
        self.min_gas_price_wei = min_gas_price_wei
        self.addresses = {addr.lower() for addr in addresses or ()}

    def check(self, contents: Contents) -> FilterVerdict:
        # Missing fields are not filtered on.
        if self.addresses and contents.to is not None and contents.to not in self.addresses:
            return FilterVerdict.ADDRESS
        if (
            self.min_gas_price_wei is not None
            and contents.gas_price is not None
            and contents.gas_price < self.min_gas_price_wei
        ):
            return FilterVerdict.LOW_FEE
        return FilterVerdict.ACCEPT


# ============================================================================
# Report rendering
# ============================================================================

def render_tx_report(stats: IntervalStats, verbose: bool = False) -> str:
    results = (
        "\nAnalysis of Transactions received on both feeds:\n"
        f"Number of transactions: {stats.seen_by_both}\n"
        f"Number of transactions received from Gateway first: {stats.reference_first}\n"
        f"Number of transactions received from Evm node first: {stats.comparator_first}\n"
        f"Percentage of transactions seen first from gateway: {stats.reference_first_pct}%\n"
        "Average time difference for transactions received first from gateway (ms): "
        f"{stats.reference_first_avg_delta_ms}\n"
        "Average time difference for transactions received first from Evm node (ms): "
        f"{stats.comparator_first_avg_delta_ms}\n"
        "\nTotal Transactions summary:\n"
        f"Total tx from gateway: {stats.total_from_reference}\n"
        f"Total tx from evm node: {stats.total_from_comparator}\n"
        f"Number of low fee tx ignored: {stats.low_fee_ignored}\n"
    )
    if verbose:
        results += (
            f"Number of high delta tx ignored: {stats.high_delta_ignored}\n"
            f"Number of new transactions received first from gateway: {stats.new_from_reference_first}\n"
            f"Number of new transactions received first from node: {stats.new_from_comparator_first}\n"
            f"Total number of transactions seen: {stats.total_seen}\n"
        )
    return results


def render_block_report(stats: IntervalStats, verbose: bool = False) -> str:
    results = (
        "\nBlock summary\n"
        f"Number of new blocks received first from gateway: {stats.new_from_reference_first}\n"
        f"Number of new blocks received first from node: {stats.new_from_comparator_first}\n"
        f"Total number of blocks seen: {stats.total_seen}\n"
        f"Total blocks from gateway: {stats.total_from_reference}\n"
        f"Total blocks from evm node: {stats.total_from_comparator}\n"
        "\nAnalysis of Blocks received on both feeds:\n"
        f"Number of blocks: {stats.seen_by_both}\n"
        f"Number of blocks received from Gateway first: {stats.reference_first}\n"
        f"Number of blocks received from Evm node first: {stats.comparator_first}\n"
        f"Percentage of blocks seen first from gateway: {stats.reference_first_pct}\n"
        "Average time difference for blocks received first from gateway (ms): "
        f"{stats.reference_first_avg_delta_ms}\n"
        "Average time difference for blocks received first from Evm node (ms): "
        f"{stats.comparator_first_avg_delta_ms}\n"
    )
    if verbose:
        results += f"Number of high delta blocks ignored: {stats.high_delta_ignored}\n"
    return results


# ============================================================================
# Variants
# ============================================================================

@dataclass(frozen=True)
class FeedVariant:
    """Key extraction, content lookup and reporting for one kind of event."""

    name: str
    parse_reference: Callable[[Any], Notification]
    parse_comparator: Callable[[Any], Notification]
    parse_lookup: Callable[[Any], Optional[Contents]]
    lookup_method: str
    lookup_params: Callable[[str], List[Any]]
    node_feed: str
    all_hashes_file: str
    missing_hashes_file: str
    csv_header: Tuple[str, ...]
    render: Callable[[IntervalStats, bool], str]
    shows_min_gas_price: bool = False

    def parse(self, source: Source, data: Any) -> Notification:
        if source is Source.REFERENCE:
            return self.parse_reference(data)
        return self.parse_comparator(data)


TRANSACTIONS = FeedVariant(
    name="transactions",
    parse_reference=parse_gateway_tx,
    parse_comparator=parse_node_tx,
    parse_lookup=parse_tx_lookup,
    lookup_method="eth_getTransactionByHash",
    lookup_params=lambda key: [key],
    node_feed="newPendingTransactions",
    all_hashes_file="all_hashes.csv",
    missing_hashes_file="missing_hashes.txt",
    csv_header=("TxHash", "BloXRoute Time", "Evm Time", "Time Diff"),
    render=render_tx_report,
    shows_min_gas_price=True,
)

BLOCKS = FeedVariant(
    name="blocks",
    parse_reference=parse_block,
    parse_comparator=parse_block,
    parse_lookup=parse_block_lookup,
    lookup_method="eth_getBlockByHash",
    lookup_params=lambda key: [key, True],
    node_feed="newHeads",
    all_hashes_file="all_block_hashes.csv",
    missing_hashes_file="missing_block_hashes.txt",
    csv_header=("BkHash", "BloXRoute Time", "Evm Time", "Time Diff"),
    render=render_block_report,
)

VARIANTS = {variant.name: variant for variant in (TRANSACTIONS, BLOCKS)}
