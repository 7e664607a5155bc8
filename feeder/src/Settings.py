"""Settings: Validated, immutable configuration for every feeder command.

``main`` parses CLI flags whose defaults come from environment variables; the
resulting namespace is turned into one of the settings classes below. Every
required value is checked before any network activity, and all missing
variables are reported in a single ConfigurationError.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path

from .Confirmation import RetryPolicy
from .errors import ConfigurationError
from .fetchers import get_available_fetchers
from .fixed_point import field_literal, is_valid_address
from .PriceAggregator import CombineMethod
from .Slasher import SlashAction


PRIVATE_KEY_PREFIX = "APrivateKey1"

# Legacy single-source key variables
LEGACY_API_KEY_VARS: dict[str, str] = {
    "CG_API_KEY": "coingecko",
    "CMC_API_KEY": "coinmarketcap",
    "CS_API_KEY": "coinstats",
}


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=abc123,coinmarketcap=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for API_KEY_COINGECKO, API_KEY_COINSTATS, etc., plus the legacy
    CG_API_KEY, CMC_API_KEY and CS_API_KEY names. Prefixed variables win over
    legacy ones.

    :param environ: Environment mapping (default: os.environ).
    :returns: Dict mapping source names to API keys.
    """
    if environ is None:
        environ = dict(os.environ)

    api_keys = {}
    for key, source in LEGACY_API_KEY_VARS.items():
        if environ.get(key):
            api_keys[source] = environ[key]

    prefixes = ["API_KEY_", "APIKEY_"]
    for key, value in environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def _check_missing(args: argparse.Namespace, required: dict[str, str]) -> None:
    """Raise one ConfigurationError naming every missing variable.

    :param args: Parsed arguments.
    :param required: Mapping of namespace attribute to environment variable.
    """
    missing = [env for attr, env in required.items() if not getattr(args, attr, None)]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")


def _parse_int(value: str | int | None, name: str, minimum: int | None = None) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e
    if minimum is not None and number < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {number}")
    return number


def _parse_float(value: str | float | None, name: str, minimum: float = 0.0) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e
    if number < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {number}")
    return number


def _check_identity(address: str, private_key: str, address_var: str, key_var: str) -> None:
    if not is_valid_address(address):
        raise ConfigurationError(f"{address_var} is not a valid Aleo address")
    if not private_key.startswith(PRIVATE_KEY_PREFIX):
        raise ConfigurationError(f"{key_var} is not an Aleo private key")


@dataclass(frozen=True)
class ChainSettings:
    """Connection settings shared by every command.

    :ivar explorer_endpoint: Explorer REST base URL.
    :ivar network: Network name (mainnet, testnet, canary).
    :ivar rpc_endpoint: Endpoint used by snarkos to query and broadcast.
    :ivar snarkos_bin: snarkos executable.
    :ivar priority_fee: Priority fee in microcredits.
    :ivar retry_policy: Confirmation polling policy.
    """

    explorer_endpoint: str
    network: str
    rpc_endpoint: str
    snarkos_bin: str = "snarkos"
    priority_fee: int = 0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> ChainSettings:
        _check_missing(args, {"explorer_endpoint": "EXPLORER_ENDPOINT"})

        max_attempts = _parse_int(args.confirm_attempts, "CONFIRM_ATTEMPTS", minimum=0)
        deadline = _parse_float(args.confirm_timeout, "CONFIRM_TIMEOUT")
        try:
            policy = RetryPolicy(
                interval=_parse_float(args.confirm_interval, "CONFIRM_INTERVAL"),
                max_attempts=max_attempts or None,
                deadline=deadline or None,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid confirmation settings: {e}") from e

        return cls(
            explorer_endpoint=args.explorer_endpoint,
            network=args.network,
            rpc_endpoint=args.rpc_endpoint or args.explorer_endpoint,
            snarkos_bin=args.snarkos_bin,
            priority_fee=_parse_int(args.fee, "FEE", minimum=0),
            retry_policy=policy,
        )


@dataclass(frozen=True)
class SubmitSettings:
    """Settings of the long-running submit agent."""

    chain: ChainSettings
    private_key: str
    address: str
    record_field: str
    program_id: str
    interval: int
    margin: int
    asset: str
    sources: tuple[str, ...]
    api_keys: dict[str, str]
    combine: CombineMethod
    min_sources: int
    poll_period: float
    fetch_timeout: float
    state_file: Path | None = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> SubmitSettings:
        """Build submit settings from parsed arguments.

        :raises ConfigurationError: If anything is missing or invalid.
        """
        _check_missing(
            args,
            {
                "explorer_endpoint": "EXPLORER_ENDPOINT",
                "private_key": "PK_PROVIDER",
                "address": "ADDR_PROVIDER",
                "record_id": "STAKE_RECORD_ID",
                "submit_program_id": "SUBMIT_PROGRAM_ID",
                "interval": "INTERVAL",
                "margin": "MARGIN",
            },
        )
        chain = ChainSettings.from_args(args)
        _check_identity(args.address, args.private_key, "ADDR_PROVIDER", "PK_PROVIDER")

        interval = _parse_int(args.interval, "INTERVAL", minimum=1)
        margin = _parse_int(args.margin, "MARGIN", minimum=0)
        if margin >= interval:
            raise ConfigurationError(
                f"MARGIN must be smaller than INTERVAL ({margin} >= {interval})"
            )

        sources = tuple(s.strip().lower() for s in (args.sources or "").split(",") if s.strip())
        if not sources:
            raise ConfigurationError("At least one price source must be configured")
        available = get_available_fetchers()
        unknown = [s for s in sources if s not in available]
        if unknown:
            raise ConfigurationError(
                f"Unknown sources: {unknown}. Available: {', '.join(available)}"
            )

        try:
            combine = CombineMethod(str(args.combine).lower())
        except ValueError as e:
            raise ConfigurationError(f"COMBINE must be mean or median, got {args.combine!r}") from e

        api_keys = parse_env_api_keys()
        api_keys.update(parse_api_keys(args.api_keys))

        min_sources = _parse_int(args.min_sources, "MIN_SOURCES", minimum=1)
        if min_sources > len(sources):
            raise ConfigurationError(
                f"MIN_SOURCES ({min_sources}) exceeds the number of sources ({len(sources)})"
            )

        return cls(
            chain=chain,
            private_key=args.private_key,
            address=args.address,
            record_field=field_literal(args.record_id),
            program_id=args.submit_program_id,
            interval=interval,
            margin=margin,
            asset=args.asset.strip().lower(),
            sources=sources,
            api_keys=api_keys,
            combine=combine,
            min_sources=min_sources,
            poll_period=_parse_float(args.poll_period, "POLL_PERIOD", minimum=1.0),
            fetch_timeout=_parse_float(args.fetch_timeout, "FETCH_TIMEOUT", minimum=1.0),
            state_file=Path(args.state_file) if args.state_file else None,
        )


@dataclass(frozen=True)
class AggregateSettings:
    """Settings of the one-shot aggregation round."""

    chain: ChainSettings
    private_key: str
    address: str
    record_field: str
    stake_program_id: str
    submit_program_id: str
    aggregate_program_id: str
    confirm: bool = True

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> AggregateSettings:
        _check_missing(
            args,
            {
                "explorer_endpoint": "EXPLORER_ENDPOINT",
                "private_key": "PK_PROVIDER",
                "address": "ADDR_PROVIDER",
                "record_id": "STAKE_RECORD_ID",
                "stake_program_id": "STAKE_PROGRAM_ID",
                "submit_program_id": "SUBMIT_PROGRAM_ID",
                "aggregate_program_id": "AGGREGATE_PROGRAM_ID",
            },
        )
        chain = ChainSettings.from_args(args)
        _check_identity(args.address, args.private_key, "ADDR_PROVIDER", "PK_PROVIDER")
        return cls(
            chain=chain,
            private_key=args.private_key,
            address=args.address,
            record_field=field_literal(args.record_id),
            stake_program_id=args.stake_program_id,
            submit_program_id=args.submit_program_id,
            aggregate_program_id=args.aggregate_program_id,
            confirm=not args.no_confirm,
        )


@dataclass(frozen=True)
class StakeSettings:
    """Settings of the one-shot staking call."""

    chain: ChainSettings
    private_key: str
    address: str
    record_field: str
    program_id: str
    amount: str

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> StakeSettings:
        _check_missing(
            args,
            {
                "explorer_endpoint": "EXPLORER_ENDPOINT",
                "private_key": "PK_PROVIDER",
                "address": "ADDR_PROVIDER",
                "record_id": "STAKE_RECORD_ID",
                "stake_program_id": "STAKE_PROGRAM_ID",
                "amount": "STAKE_AMOUNT",
            },
        )
        chain = ChainSettings.from_args(args)
        _check_identity(args.address, args.private_key, "ADDR_PROVIDER", "PK_PROVIDER")
        return cls(
            chain=chain,
            private_key=args.private_key,
            address=args.address,
            record_field=field_literal(args.record_id),
            program_id=args.stake_program_id,
            amount=args.amount.strip(),
        )


@dataclass(frozen=True)
class SlashSettings:
    """Settings of the one-shot slashing call.

    :ivar action: PROVIDER (needs ``target``) or AGGREGATOR.
    :ivar target: Address of the provider to slash.
    """

    chain: ChainSettings
    private_key: str
    address: str
    feed_field: str
    program_id: str
    action: SlashAction
    target: str | None = None

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> SlashSettings:
        _check_missing(
            args,
            {
                "explorer_endpoint": "EXPLORER_ENDPOINT",
                "private_key": "PK_SLASHER",
                "address": "ADDR_SLASHER",
                "feed_id": "FEED_ID",
                "aggregate_program_id": "AGGREGATE_PROGRAM_ID",
                "action": "SLASH_ACTION",
            },
        )
        chain = ChainSettings.from_args(args)
        _check_identity(args.address, args.private_key, "ADDR_SLASHER", "PK_SLASHER")

        try:
            action = SlashAction(str(args.action).strip().lower())
        except ValueError as e:
            raise ConfigurationError(
                f"SLASH_ACTION must be provider or aggregator, got {args.action!r}"
            ) from e

        target = args.target or None
        if action is SlashAction.PROVIDER:
            if not target:
                raise ConfigurationError(
                    "Missing required settings: PROVIDER_TO_SLASH_ADDRESS"
                )
            if not is_valid_address(target):
                raise ConfigurationError("PROVIDER_TO_SLASH_ADDRESS is not a valid Aleo address")
        else:
            target = None

        return cls(
            chain=chain,
            private_key=args.private_key,
            address=args.address,
            feed_field=field_literal(args.feed_id),
            program_id=args.aggregate_program_id,
            action=action,
            target=target,
        )
