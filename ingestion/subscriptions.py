"""JSON-RPC subscription requests for gateway and EVM node feeds."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Subscription:
    """A subscribe request and the method used to cancel it."""

    name: str
    request: Dict[str, Any]
    unsubscribe_method: str

    @property
    def request_id(self) -> Any:
        return self.request["id"]

    def unsubscribe_request(self, subscription_id: str) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": self.request_id,
            "method": self.unsubscribe_method,
            "params": [subscription_id],
        }


def node_subscription(feed: str) -> Subscription:
    """eth_subscribe to newPendingTransactions or newHeads."""
    return Subscription(
        name=feed,
        request={"jsonrpc": "2.0", "id": 1, "method": "eth_subscribe", "params": [feed]},
        unsubscribe_method="eth_unsubscribe",
    )


def gateway_tx_subscription(
    feed_name: str,
    include_contents: bool = True,
    duplicates: bool = False,
    include_from_blockchain: bool = True,
    use_go_gateway: bool = False,
) -> Subscription:
    """
    Subscribe to a gateway transaction feed (newTxs, pendingTxs).

    Args:
        feed_name: Gateway feed name
        include_contents: Request gas price and destination with each hash
        duplicates: Let the gateway repeat already announced hashes
        include_from_blockchain: Include transactions first seen in blocks
        use_go_gateway: Use the field names of the Go gateway
    """
    include = ["tx_hash"]
    if include_contents:
        if use_go_gateway:
            include += ["tx_contents.gas_price", "tx_contents.to"]
        else:
            include.append("tx_contents")

    options: Dict[str, Any] = {"include": include, "duplicates": duplicates}
    if include_from_blockchain:
        options["include_from_blockchain"] = True

    return Subscription(
        name=feed_name,
        request={"jsonrpc": "2.0", "id": 1, "method": "subscribe", "params": [feed_name, options]},
        unsubscribe_method="unsubscribe",
    )


def gateway_block_subscription(feed_name: str, include_contents: bool = True) -> Subscription:
    """Subscribe to a gateway block feed (bdnBlocks, newBlocks)."""
    include = ["hash", "header"] if include_contents else ["hash"]
    return Subscription(
        name=feed_name,
        request={
            "jsonrpc": "2.0",
            "id": 1,
            "method": "subscribe",
            "params": [feed_name, {"include": include}],
        },
        unsubscribe_method="unsubscribe",
    )
