#!/usr/bin/env python3
"""Aleo Price Feeder.

Off-chain agents for the Aleo price oracle programs: a submit agent that
publishes an aggregated price once per block window, a coordinator that
proposes and finalizes the median of all providers, and one-shot staking,
slashing and inspection tools.

Every flag falls back to an environment variable. See README.md for the full
configuration.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.BlockWindow import BlockWindowScheduler, WindowStateStore
from .src.ChainClientSnarkos import NETWORK_IDS, ChainClientSnarkos
from .src.Confirmation import ConfirmationWaiter
from .src.Coordinator import AggregationCoordinator
from .src.Explorer import ExplorerClient
from .src.fetchers import BaseFetcher, get_available_fetchers, get_fetcher
from .src.fixed_point import address_to_field
from .src.PriceAggregator import PriceAggregator
from .src.PriceFeeder import PriceFeeder
from .src.Settings import (
    AggregateSettings,
    ChainSettings,
    SlashSettings,
    StakeSettings,
    SubmitSettings,
)
from .src.Slasher import SlashingInitiator
from .src.Staker import stake
from .src.Submitter import OnChainSubmitter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_SOURCES = "coingecko,coinmarketcap,coinstats"


def _log_banner(title: str, rows: list[tuple[str, object]]) -> None:
    logger.info("=" * 60)
    logger.info(f"Aleo Price Feeder - {title}")
    logger.info("=" * 60)
    for label, value in rows:
        logger.info(f"{label + ':':<19}{value}")
    logger.info("=" * 60)


def _chain_rows(chain: ChainSettings) -> list[tuple[str, object]]:
    policy = chain.retry_policy
    return [
        ("Network", chain.network),
        ("Explorer", chain.explorer_endpoint),
        ("RPC", chain.rpc_endpoint),
        ("Priority Fee", chain.priority_fee),
        (
            "Confirmation",
            f"every {policy.interval}s, max {policy.max_attempts or 'unbounded'} polls, "
            f"deadline {policy.deadline or 'none'}s",
        ),
    ]


def build_explorer(chain: ChainSettings) -> ExplorerClient:
    return ExplorerClient(chain.explorer_endpoint, chain.network)


def build_chain_client(chain: ChainSettings, explorer: ExplorerClient) -> ChainClientSnarkos:
    return ChainClientSnarkos(
        explorer=explorer,
        rpc_endpoint=chain.rpc_endpoint,
        network=chain.network,
        snarkos_bin=chain.snarkos_bin,
    )


def build_waiter(chain: ChainSettings, explorer: ExplorerClient) -> ConfirmationWaiter:
    return ConfirmationWaiter(explorer, chain.retry_policy)


async def run_submit(settings: SubmitSettings, once: bool = False) -> None:
    """Run the submit agent forever, or a single cycle with ``once``."""
    explorer = build_explorer(settings.chain)
    chain_client = build_chain_client(settings.chain, explorer)

    fetchers = {
        source: get_fetcher(
            source,
            api_key=settings.api_keys.get(source),
            timeout=settings.fetch_timeout,
        )
        for source in settings.sources
    }
    missing_keys = [
        source for source, fetcher in fetchers.items()
        if fetcher.requires_api_key and not fetcher.has_api_key
    ]
    if missing_keys:
        logger.warning(f"No API key for {missing_keys}; these sources will fail")

    feeder = PriceFeeder(
        explorer=explorer,
        aggregator=PriceAggregator(
            fetchers,
            method=settings.combine,
            min_sources=settings.min_sources,
            fetch_timeout=settings.fetch_timeout,
        ),
        scheduler=BlockWindowScheduler(settings.interval, settings.margin),
        submitter=OnChainSubmitter(
            chain_client,
            build_waiter(settings.chain, explorer),
            settings.program_id,
            priority_fee=settings.chain.priority_fee,
        ),
        record_field=settings.record_field,
        asset=settings.asset,
        address=settings.address,
        private_key=settings.private_key,
        poll_period=settings.poll_period,
        store=WindowStateStore(settings.state_file) if settings.state_file else None,
    )

    if not once:
        await feeder.run()
        return

    try:
        await feeder.run_once()
    finally:
        await BaseFetcher.close_shared_client()
        await chain_client.aclose()


async def run_aggregate(settings: AggregateSettings) -> None:
    explorer = build_explorer(settings.chain)
    chain_client = build_chain_client(settings.chain, explorer)
    coordinator = AggregationCoordinator(
        chain=chain_client,
        waiter=build_waiter(settings.chain, explorer) if settings.confirm else None,
        stake_program_id=settings.stake_program_id,
        submit_program_id=settings.submit_program_id,
        aggregate_program_id=settings.aggregate_program_id,
        record_field=settings.record_field,
        address=settings.address,
        private_key=settings.private_key,
        priority_fee=settings.chain.priority_fee,
    )
    try:
        result = await coordinator.run()
    finally:
        await chain_client.aclose()
    logger.info(
        f"Aggregation complete: median {result.median_price} from "
        f"{len(result.provider_prices)} providers "
        f"(propose {result.propose_tx}, finalize {result.finalize_tx})"
    )


async def run_stake(settings: StakeSettings) -> None:
    explorer = build_explorer(settings.chain)
    chain_client = build_chain_client(settings.chain, explorer)
    try:
        await stake(
            chain_client,
            build_waiter(settings.chain, explorer),
            program_id=settings.program_id,
            record_field=settings.record_field,
            amount=settings.amount,
            provider_address=settings.address,
            private_key=settings.private_key,
            priority_fee=settings.chain.priority_fee,
        )
    finally:
        await chain_client.aclose()


async def run_slash(settings: SlashSettings) -> None:
    explorer = build_explorer(settings.chain)
    chain_client = build_chain_client(settings.chain, explorer)
    initiator = SlashingInitiator(
        chain=chain_client,
        waiter=build_waiter(settings.chain, explorer),
        program_id=settings.program_id,
        feed_field=settings.feed_field,
        slasher_address=settings.address,
        private_key=settings.private_key,
        priority_fee=settings.chain.priority_fee,
    )
    try:
        outcome = await initiator.run(settings.action, settings.target)
    finally:
        await chain_client.aclose()
    logger.info(f"Slashing transaction {outcome.tx_id} accepted")


async def run_height(chain: ChainSettings) -> int:
    explorer = build_explorer(chain)
    try:
        return await explorer.latest_height()
    finally:
        await explorer.aclose()


def _add_chain_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--explorer-endpoint",
        dest="explorer_endpoint",
        type=str,
        help="Explorer REST base URL (e.g., https://api.explorer.provable.com/v1)",
        default=os.environ.get("EXPLORER_ENDPOINT"),
    )
    parser.add_argument(
        "--network",
        type=str,
        choices=sorted(NETWORK_IDS),
        help="Network to connect to (default: testnet)",
        default=os.environ.get("NETWORK") or "testnet",
    )
    parser.add_argument(
        "--rpc-endpoint",
        dest="rpc_endpoint",
        type=str,
        help="Endpoint used to query state and broadcast (default: explorer endpoint)",
        default=os.environ.get("RPC_ENDPOINT"),
    )
    parser.add_argument(
        "--fee",
        type=str,
        help="Priority fee in microcredits (default: 0)",
        default=os.environ.get("FEE") or "0",
    )
    parser.add_argument(
        "--snarkos-bin",
        dest="snarkos_bin",
        type=str,
        help="snarkos executable (default: snarkos)",
        default=os.environ.get("SNARKOS_BIN") or "snarkos",
    )
    parser.add_argument(
        "--confirm-interval",
        dest="confirm_interval",
        type=str,
        help="Seconds between confirmation polls (default: 10)",
        default=os.environ.get("CONFIRM_INTERVAL") or "10",
    )
    parser.add_argument(
        "--confirm-attempts",
        dest="confirm_attempts",
        type=str,
        help="Maximum confirmation polls, 0 for no ceiling (default: 50)",
        default=os.environ.get("CONFIRM_ATTEMPTS") or "50",
    )
    parser.add_argument(
        "--confirm-timeout",
        dest="confirm_timeout",
        type=str,
        help="Confirmation deadline in seconds, 0 for none (default: 600)",
        default=os.environ.get("CONFIRM_TIMEOUT") or "600",
    )


def _add_identity_arguments(
    parser: argparse.ArgumentParser, key_var: str, address_var: str
) -> None:
    parser.add_argument(
        "--private-key",
        dest="private_key",
        type=str,
        help=f"Signing key (prefer the {key_var} environment variable)",
        default=os.environ.get(key_var),
    )
    parser.add_argument(
        "--address",
        type=str,
        help=f"Own Aleo address (env: {address_var})",
        default=os.environ.get(address_var),
    )


def _add_record_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--record-id",
        dest="record_id",
        type=str,
        help="Stake record identifier, with or without the field suffix",
        default=os.environ.get("STAKE_RECORD_ID"),
    )


def _add_program_argument(parser: argparse.ArgumentParser, name: str) -> None:
    env_var = f"{name.upper()}_PROGRAM_ID"
    parser.add_argument(
        f"--{name}-program",
        dest=f"{name}_program_id",
        type=str,
        help=f"{name.capitalize()} program id (env: {env_var})",
        default=os.environ.get(env_var),
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser with environment variable defaults."""
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        prog="price-feeder",
        description="Aleo Price Feeder: Off-chain agents for the on-chain price oracle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # Run the submit agent for one provider
  python -m feeder.main submit --record-id 1 --interval 100 --margin 10

  # Run one aggregation round without waiting for confirmations
  python -m feeder.main aggregate --no-confirm

  # Slash a misbehaving provider
  python -m feeder.main slash --action provider --target aleo1...

  # Print the current block height
  python -m feeder.main height

Environment variables (CLI args take precedence):
  EXPLORER_ENDPOINT, RPC_ENDPOINT, NETWORK, FEE, PK_PROVIDER, ADDR_PROVIDER,
  STAKE_RECORD_ID, INTERVAL, MARGIN, SUBMIT_PROGRAM_ID, STAKE_PROGRAM_ID,
  AGGREGATE_PROGRAM_ID, SOURCES, API_KEYS, API_KEY_COINSTATS, etc.
""",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # submit
    submit = subparsers.add_parser("submit", help="Run the per-window submit agent")
    _add_chain_arguments(submit)
    _add_identity_arguments(submit, "PK_PROVIDER", "ADDR_PROVIDER")
    _add_record_argument(submit)
    _add_program_argument(submit, "submit")
    submit.add_argument(
        "--interval",
        type=str,
        help="Submission window length in blocks",
        default=os.environ.get("INTERVAL"),
    )
    submit.add_argument(
        "--margin",
        type=str,
        help="Blocks at the end of a window in which no submission is made",
        default=os.environ.get("MARGIN"),
    )
    submit.add_argument(
        "--asset",
        type=str,
        help="Asset to price (default: aleo)",
        default=os.environ.get("ASSET") or "aleo",
    )
    submit.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated price sources. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or DEFAULT_SOURCES,
    )
    submit.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=abc,coinstats=xyz)",
        default=os.environ.get("API_KEYS"),
    )
    submit.add_argument(
        "--combine",
        type=str,
        choices=["mean", "median"],
        help="How source prices are combined (default: mean)",
        default=os.environ.get("COMBINE") or "mean",
    )
    submit.add_argument(
        "--min-sources",
        dest="min_sources",
        type=str,
        help="Minimum sources required for a price (default: 1)",
        default=os.environ.get("MIN_SOURCES") or "1",
    )
    submit.add_argument(
        "--poll-period",
        dest="poll_period",
        type=str,
        help="Seconds between height checks (default: 600)",
        default=os.environ.get("POLL_PERIOD") or "600",
    )
    submit.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=str,
        help="Timeout for individual fetch requests in seconds (default: 10)",
        default=os.environ.get("FETCH_TIMEOUT") or "10",
    )
    submit.add_argument(
        "--state-file",
        dest="state_file",
        type=str,
        help="JSON file persisting the last handled window (default: memory only)",
        default=os.environ.get("STATE_FILE"),
    )
    submit.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )

    # aggregate
    aggregate = subparsers.add_parser(
        "aggregate", help="Propose and finalize the median of all provider prices"
    )
    _add_chain_arguments(aggregate)
    _add_identity_arguments(aggregate, "PK_PROVIDER", "ADDR_PROVIDER")
    _add_record_argument(aggregate)
    _add_program_argument(aggregate, "stake")
    _add_program_argument(aggregate, "submit")
    _add_program_argument(aggregate, "aggregate")
    aggregate.add_argument(
        "--no-confirm",
        dest="no_confirm",
        action="store_true",
        help="Do not wait for propose/finalize to be confirmed",
    )

    # stake
    stake_parser = subparsers.add_parser("stake", help="Stake for a record")
    _add_chain_arguments(stake_parser)
    _add_identity_arguments(stake_parser, "PK_PROVIDER", "ADDR_PROVIDER")
    _add_record_argument(stake_parser)
    _add_program_argument(stake_parser, "stake")
    stake_parser.add_argument(
        "--amount",
        type=str,
        help="Stake amount literal (e.g., 1000000u64)",
        default=os.environ.get("STAKE_AMOUNT"),
    )

    # slash
    slash = subparsers.add_parser("slash", help="Slash a provider or the aggregator")
    _add_chain_arguments(slash)
    _add_identity_arguments(slash, "PK_SLASHER", "ADDR_SLASHER")
    _add_program_argument(slash, "aggregate")
    slash.add_argument(
        "--feed-id",
        dest="feed_id",
        type=str,
        help="Feed identifier, with or without the field suffix",
        default=os.environ.get("FEED_ID"),
    )
    slash.add_argument(
        "--action",
        type=str,
        help="provider or aggregator",
        default=os.environ.get("SLASH_ACTION"),
    )
    slash.add_argument(
        "--target",
        type=str,
        help="Address of the provider to slash",
        default=os.environ.get("PROVIDER_TO_SLASH_ADDRESS"),
    )

    # height
    height = subparsers.add_parser("height", help="Print the latest block height")
    _add_chain_arguments(height)

    # address-to-field
    to_field = subparsers.add_parser(
        "address-to-field", help="Convert an Aleo address to its field literal"
    )
    to_field.add_argument("address", type=str, help="Aleo address (aleo1...)")

    return parser


def main() -> None:
    """Main entry point for the Aleo Price Feeder CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if args.command == "submit":
            settings = SubmitSettings.from_args(args)
            _log_banner(
                "Submit Agent",
                _chain_rows(settings.chain)
                + [
                    ("Provider", settings.address),
                    ("Program", settings.program_id),
                    ("Record", settings.record_field),
                    ("Window", f"{settings.interval} blocks, margin {settings.margin}"),
                    ("Asset", settings.asset),
                    ("Sources", ", ".join(settings.sources)),
                    ("Combine", settings.combine.value),
                    ("Min Sources", settings.min_sources),
                    ("Poll Period", f"{settings.poll_period}s"),
                    ("Fetch Timeout", f"{settings.fetch_timeout}s"),
                    ("State File", settings.state_file or "memory only"),
                    ("API Keys", ", ".join(settings.api_keys) or "none"),
                ],
            )
            asyncio.run(run_submit(settings, once=args.once))

        elif args.command == "aggregate":
            settings = AggregateSettings.from_args(args)
            _log_banner(
                "Aggregation",
                _chain_rows(settings.chain)
                + [
                    ("Caller", settings.address),
                    ("Record", settings.record_field),
                    ("Stake Program", settings.stake_program_id),
                    ("Submit Program", settings.submit_program_id),
                    ("Aggregate Program", settings.aggregate_program_id),
                    ("Confirm", "yes" if settings.confirm else "no"),
                ],
            )
            asyncio.run(run_aggregate(settings))

        elif args.command == "stake":
            settings = StakeSettings.from_args(args)
            _log_banner(
                "Stake",
                _chain_rows(settings.chain)
                + [
                    ("Provider", settings.address),
                    ("Program", settings.program_id),
                    ("Record", settings.record_field),
                    ("Amount", settings.amount),
                ],
            )
            asyncio.run(run_stake(settings))

        elif args.command == "slash":
            settings = SlashSettings.from_args(args)
            rows = _chain_rows(settings.chain) + [
                ("Slasher", settings.address),
                ("Program", settings.program_id),
                ("Feed", settings.feed_field),
                ("Action", settings.action.value),
            ]
            if settings.target:
                rows.append(("Target", settings.target))
            _log_banner("Slashing", rows)
            asyncio.run(run_slash(settings))

        elif args.command == "height":
            chain = ChainSettings.from_args(args)
            print(asyncio.run(run_height(chain)))

        elif args.command == "address-to-field":
            print(address_to_field(args.address))

    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
