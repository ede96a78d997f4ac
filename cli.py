#!/usr/bin/env python3
"""
EVM Feed Compare CLI

Compares the stream of transactions or blocks delivered by a gateway (or the
Cloud API) with the stream delivered by an EVM node, and reports which feed
announces each hash first.

Usage:
    python cli.py transactions --gateway ws://127.0.0.1:28333/ws --feed-ws-endpoint ws://127.0.0.1:8546
    python cli.py transactions --min-gas-price 5 --addresses 0xabc,0xdef --dump ALL,MISSING
    python cli.py blocks --use-cloud-api --auth-header <header> --num-intervals 3
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from analytics import DumpSink
from comparison import (
    BLOCKS,
    TRANSACTIONS,
    VARIANTS,
    ComparisonConfig,
    ConfigError,
    ContentEnrichmentPool,
    FeedCompareError,
    FeedComparisonEngine,
    FeedVariant,
    IntervalController,
    IntervalStats,
    Source,
)
from comparison.config import DUMP_CHOICES, parse_addresses
from ingestion import (
    FeedConfig,
    FeedReader,
    Subscription,
    fetcher_factory,
    gateway_block_subscription,
    gateway_tx_subscription,
    node_subscription,
)

load_dotenv()

logger = logging.getLogger("evm-feed-compare")

DEFAULT_FEED_NAMES = {
    TRANSACTIONS.name: "newTxs",
    BLOCKS.name: "bdnBlocks",
}


class FeedCompareRunner:
    """
    Wires readers, engine, enrichment pool and dump sink for one run.

    Only the composition lives here; the run itself is driven by the
    IntervalController.
    """

    def __init__(
        self,
        variant: FeedVariant,
        config: ComparisonConfig,
        feed_config: FeedConfig,
    ):
        self.variant = variant
        self.config = config
        self.feed_config = feed_config

    def build_sink(self) -> Optional[DumpSink]:
        if not (self.config.dump_all or self.config.dump_missing):
            return None
        return DumpSink(
            all_path=self.variant.all_hashes_file if self.config.dump_all else None,
            missing_path=self.variant.missing_hashes_file if self.config.dump_missing else None,
            header=self.variant.csv_header,
        )

    def reference_subscription(self) -> Subscription:
        feed_name = self.feed_config.feed_name or DEFAULT_FEED_NAMES[self.variant.name]
        if self.variant is BLOCKS:
            return gateway_block_subscription(
                feed_name, include_contents=not self.config.exclude_contents
            )
        return gateway_tx_subscription(
            feed_name,
            include_contents=not self.config.exclude_contents,
            duplicates=not self.feed_config.exclude_duplicates,
            include_from_blockchain=not self.feed_config.exclude_from_blockchain,
            use_go_gateway=self.feed_config.use_go_gateway,
        )

    def build_readers(self, engine: FeedComparisonEngine) -> List[FeedReader]:
        reference = FeedReader(
            Source.REFERENCE,
            self.feed_config.reference_uri,
            self.reference_subscription(),
            engine.feeds[Source.REFERENCE],
            config=self.feed_config,
            headers=self.feed_config.reference_headers,
            clock=engine.clock,
        )
        comparator = FeedReader(
            Source.COMPARATOR,
            self.feed_config.node_ws_uri,
            node_subscription(self.variant.node_feed),
            engine.feeds[Source.COMPARATOR],
            config=self.feed_config,
            clock=engine.clock,
        )
        return [reference, comparator]

    def build_enrichment(self, engine: FeedComparisonEngine) -> Optional[ContentEnrichmentPool]:
        if not engine.enrich:
            return None
        factory = fetcher_factory(
            self.feed_config.content_lookup_uri,
            self.variant.lookup_method,
            self.variant.lookup_params,
            timeout=self.feed_config.lookup_timeout,
        )
        return ContentEnrichmentPool(
            factory,
            engine.contents,
            workers=self.config.enrichment_workers,
            queue_size=self.config.enrichment_queue_size,
        )

    async def run(self) -> List[IntervalStats]:
        """
        Run every interval and print the reports.

        Raises:
            ConfigError: invalid settings, before anything is connected
            TransportError: a primary feed could not be connected
        """
        self.config.validate()

        sink = self.build_sink()
        if sink is not None:
            sink.open()
        try:
            engine = FeedComparisonEngine(self.variant, self.config, sink=sink)
            controller = IntervalController(
                engine,
                self.build_readers(engine),
                enrichment=self.build_enrichment(engine),
            )
            return await controller.run()
        finally:
            if sink is not None:
                sink.close()


# ============================================================================
# Argument parsing
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Parser with one subcommand per variant; defaults come from the environment."""
    comparison = ComparisonConfig()
    feeds = FeedConfig()

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--gateway", default=feeds.gateway_ws_uri,
                        help="gateway websocket connection string")
    common.add_argument("--feed-ws-endpoint", default=feeds.node_ws_uri,
                        help="evm node websocket connection string")
    common.add_argument("--lookup-endpoint", default=feeds.lookup_uri,
                        help="ws:// or http:// endpoint for content lookups (default: node)")
    common.add_argument("--feed-name", default=feeds.feed_name,
                        help="gateway feed name")
    common.add_argument("--interval", type=float, default=comparison.interval,
                        help="length of feed sample interval in seconds")
    common.add_argument("--num-intervals", type=int, default=comparison.num_intervals,
                        help="number of intervals")
    common.add_argument("--lead-time", type=float, default=comparison.lead_time,
                        help="seconds to wait before starting to compare feeds")
    common.add_argument("--trail-time", type=float, default=comparison.trail_time,
                        help="seconds to wait after interval to receive hashes on both feeds")
    common.add_argument("--ignore-delta", type=float, default=comparison.ignore_delta,
                        help="ignore hashes with delta above this amount (seconds)")
    common.add_argument("--dump", default=comparison.dump,
                        help="info to dump, possible values: " + ", ".join(DUMP_CHOICES))
    common.add_argument("--use-cloud-api", action="store_true", default=feeds.use_cloud_api,
                        help="use cloud API")
    common.add_argument("--cloud-api-ws-uri", default=feeds.cloud_api_ws_uri,
                        help="websocket connection string for cloud API")
    common.add_argument("--auth-header", default=feeds.auth_header,
                        help="authorization header created with account id and password")
    common.add_argument("--workers", type=int, default=comparison.enrichment_workers,
                        help="number of content lookup connections")
    common.add_argument("--verbose", action="store_true", help="level of output")
    common.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    parser = argparse.ArgumentParser(
        description="Compares stream of txs/blocks from gateway vs node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    tx_parser = subparsers.add_parser(
        TRANSACTIONS.name, parents=[common], help="compares stream of txs from gateway vs node"
    )
    tx_parser.add_argument("--min-gas-price", type=float, default=comparison.min_gas_price_gwei,
                           help="gas price in gigawei")
    tx_parser.add_argument("--addresses", default=",".join(sorted(comparison.addresses)),
                           help="comma separated list of evm addresses")
    tx_parser.add_argument("--exclude-tx-contents", dest="exclude_contents",
                           action="store_true", default=comparison.exclude_contents,
                           help="optionally exclude tx contents")
    tx_parser.add_argument("--exclude-duplicates", action=argparse.BooleanOptionalAction,
                           default=feeds.exclude_duplicates, help="for pendingTxs only")
    tx_parser.add_argument("--exclude-from-blockchain", action="store_true",
                           help="exclude from blockchain")
    tx_parser.add_argument("--use-go-gateway", action="store_true", help="use GO Gateway")

    bk_parser = subparsers.add_parser(
        BLOCKS.name, parents=[common], help="compares stream of blocks from gateway vs node"
    )
    bk_parser.add_argument("--exclude-block-contents", dest="exclude_contents",
                           action="store_true", default=comparison.exclude_contents,
                           help="optionally exclude block contents")

    return parser


def configs_from_args(args: argparse.Namespace):
    """Build the comparison and feed configuration of one run."""
    comparison = ComparisonConfig(
        lead_time=args.lead_time,
        interval=args.interval,
        trail_time=args.trail_time,
        num_intervals=args.num_intervals,
        ignore_delta=args.ignore_delta,
        exclude_contents=args.exclude_contents,
        min_gas_price_gwei=getattr(args, "min_gas_price", None),
        addresses=parse_addresses(getattr(args, "addresses", "") or ""),
        enrichment_workers=args.workers,
        dump=args.dump,
        verbose=args.verbose,
    )
    feeds = FeedConfig(
        gateway_ws_uri=args.gateway,
        cloud_api_ws_uri=args.cloud_api_ws_uri,
        use_cloud_api=args.use_cloud_api,
        auth_header=args.auth_header,
        feed_name=args.feed_name,
        node_ws_uri=args.feed_ws_endpoint,
        lookup_uri=args.lookup_endpoint,
        exclude_duplicates=getattr(args, "exclude_duplicates", True),
        exclude_from_blockchain=getattr(args, "exclude_from_blockchain", False),
        use_go_gateway=getattr(args, "use_go_gateway", False),
    )
    return comparison, feeds


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    comparison, feeds = configs_from_args(args)
    runner = FeedCompareRunner(VARIANTS[args.command], comparison, feeds)

    try:
        asyncio.run(runner.run())
    except ConfigError as e:
        logger.error(f"invalid configuration: {e}")
        return 1
    except FeedCompareError as e:
        logger.error(f"comparison aborted: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupt received, shutting down...")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
