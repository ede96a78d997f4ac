"""Ingestion Layer - real-time gateway and EVM node feed readers."""

from .config import FeedConfig
from .fetcher import HttpRpcFetcher, WebSocketRpcFetcher, fetcher_factory
from .reader import FeedReader
from .subscriptions import (
    Subscription,
    gateway_block_subscription,
    gateway_tx_subscription,
    node_subscription,
)

__all__ = [
    "FeedConfig",
    "FeedReader",
    "HttpRpcFetcher",
    "WebSocketRpcFetcher",
    "fetcher_factory",
    "Subscription",
    "gateway_block_subscription",
    "gateway_tx_subscription",
    "node_subscription",
]
