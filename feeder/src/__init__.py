"""
Aleo Price Feeder - Off-Chain Agents for the On-Chain Price Oracle

This module provides the agents that feed the oracle programs:
- PriceAggregator: Concurrent multi-source fetching combined via mean or median
- BlockWindow: Block-height submission windows with a safety margin
- Submitter: submit_price execution with bounded confirmation polling
- Coordinator: Provider median reconciliation and propose/finalize rounds
- Slasher: Provider and aggregator slashing
- PriceFeeder: Long-running submit agent loop
- fetchers: Modular price fetcher implementations
"""

from .BlockWindow import BlockWindowScheduler, WindowDecision, WindowState
from .Confirmation import ConfirmationOutcome, ConfirmationStatus, RetryPolicy
from .Coordinator import AggregationCoordinator
from .PriceAggregator import AggregatedPrice, CombineMethod, PriceAggregator
from .PriceFeeder import PriceFeeder
from .Slasher import SlashAction, SlashingInitiator
from .Submitter import OnChainSubmitter

__all__ = [
    "AggregatedPrice",
    "AggregationCoordinator",
    "BlockWindowScheduler",
    "CombineMethod",
    "ConfirmationOutcome",
    "ConfirmationStatus",
    "OnChainSubmitter",
    "PriceAggregator",
    "PriceFeeder",
    "RetryPolicy",
    "SlashAction",
    "SlashingInitiator",
    "WindowDecision",
    "WindowState",
]
