"""PriceFeeder: Long-running submit agent for one provider.

Every poll period the agent:
    - Reads the latest block height from the explorer
    - Asks the BlockWindowScheduler what to do in the current window
    - On SUBMIT: aggregates the price, submits it and waits for confirmation
    - On SKIP_MISSED: logs the missed window and moves on
    - Records the handled window in its WindowState (and the state file, if any)

A failing cycle is logged and never stops the loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .BlockWindow import WindowDecision, WindowPlan, WindowState
from .fetchers import BaseFetcher
from .fixed_point import from_fixed

if TYPE_CHECKING:
    from .BlockWindow import BlockWindowScheduler, WindowStateStore
    from .Explorer import ExplorerClient
    from .PriceAggregator import PriceAggregator
    from .Submitter import OnChainSubmitter

logger = logging.getLogger(__name__)


class PriceFeeder:
    """Submit agent orchestrating aggregator, scheduler and submitter.

    :ivar state: Current window state.
    :ivar poll_period: Seconds between cycles.
    """

    def __init__(
        self,
        explorer: ExplorerClient,
        aggregator: PriceAggregator,
        scheduler: BlockWindowScheduler,
        submitter: OnChainSubmitter,
        record_field: str,
        asset: str,
        address: str,
        private_key: str,
        poll_period: float = 600.0,
        state: WindowState | None = None,
        store: WindowStateStore | None = None,
    ) -> None:
        """Initialize the submit agent.

        :param explorer: Explorer client for height lookups.
        :param aggregator: Price aggregator.
        :param scheduler: Block-window scheduler.
        :param submitter: On-chain submitter.
        :param record_field: Record field literal (e.g., "12field").
        :param asset: Asset symbol to price (e.g., "aleo").
        :param address: Provider's own address.
        :param private_key: Provider's signing key.
        :param poll_period: Seconds between cycles (default: 600).
        :param state: Initial window state (default: loaded from store, or fresh).
        :param store: Optional persistent store for the window state.
        """
        self.explorer = explorer
        self.aggregator = aggregator
        self.scheduler = scheduler
        self.submitter = submitter
        self.record_field = record_field
        self.asset = asset
        self.address = address
        self.private_key = private_key
        self.poll_period = poll_period
        self.store = store

        if state is None:
            state = store.load() if store is not None else WindowState()
        self.state = state

    def _advance(self, window: int) -> None:
        self.state = self.state.advance(window)
        if self.store is not None:
            self.store.save(self.state)

    async def _submit_window(self, plan: WindowPlan) -> None:
        aggregated = await self.aggregator.aggregate(self.asset)
        logger.info(
            f"Window {plan.window}: {self.asset} = {from_fixed(aggregated.value)} "
            f"({aggregated.method.value} of {', '.join(aggregated.sources)})"
        )

        tx_id = await self.submitter.submit(
            self.record_field, aggregated.value, self.address, self.private_key
        )
        # The window is spent once the chain holds the transaction
        self._advance(plan.window)

        outcome = await self.submitter.confirm(tx_id)
        if outcome.accepted:
            logger.info(
                f"Window {plan.window}: submission {tx_id} accepted "
                f"after {outcome.attempts} polls"
            )
        else:
            logger.error(
                f"Window {plan.window}: submission {tx_id} ended {outcome.status.value}"
            )

    async def run_once(self) -> WindowPlan:
        """Run one observe/decide/act cycle.

        :returns: The plan evaluated for the observed height.
        :raises Exception: Whatever the cycle raised; state stays unchanged
            unless the submission was broadcast.
        """
        height = await self.explorer.latest_height()
        plan = self.scheduler.evaluate(height, self.state)
        logger.debug(
            f"Height {height}: window {plan.window}, position {plan.position}, "
            f"decision {plan.decision.value}"
        )

        if plan.decision is WindowDecision.SUBMIT:
            logger.info(
                f"Height {height}: inside window {plan.window} "
                f"(position {plan.position}/{self.scheduler.last_safe_position}), submitting"
            )
            await self._submit_window(plan)
        elif plan.decision is WindowDecision.SKIP_MISSED:
            logger.error(
                f"Height {height}: window {plan.window} missed "
                f"(position {plan.position} > {self.scheduler.last_safe_position})"
            )
            self._advance(plan.window)
        else:
            logger.info(f"Height {height}: window {plan.window} already handled")

        return plan

    async def run(self) -> None:
        """Run the agent until cancelled."""
        logger.info(
            f"PriceFeeder started: asset={self.asset}, record={self.record_field}, "
            f"interval={self.scheduler.interval}, margin={self.scheduler.margin}, "
            f"poll_period={self.poll_period}s"
        )
        try:
            while True:
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(f"Cycle failed: {e}")
                await asyncio.sleep(self.poll_period)
        finally:
            await BaseFetcher.close_shared_client()
            await self.submitter.chain.aclose()
