"""Slasher: Operator-triggered penalties against a provider or the aggregator."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from .ChainClient import TransactionRequest
from .errors import ConfigurationError

if TYPE_CHECKING:
    from .ChainClient import ChainClient
    from .Confirmation import ConfirmationOutcome, ConfirmationWaiter

logger = logging.getLogger(__name__)


class SlashAction(str, Enum):
    """Who gets slashed."""

    PROVIDER = "provider"
    AGGREGATOR = "aggregator"

    @property
    def function_name(self) -> str:
        return f"slash_{self.value}"


class SlashingInitiator:
    """Executes exactly one slashing call and waits for it to be accepted.

    :ivar chain: Chain client used to execute the call.
    :ivar waiter: Confirmation waiter.
    :ivar program_id: Aggregation program exposing the slash functions.
    :ivar feed_field: Feed field literal (e.g., "7field").
    :ivar slasher_address: Address of the account initiating the slash.
    """

    def __init__(
        self,
        chain: ChainClient,
        waiter: ConfirmationWaiter,
        program_id: str,
        feed_field: str,
        slasher_address: str,
        private_key: str,
        priority_fee: int = 0,
    ) -> None:
        self.chain = chain
        self.waiter = waiter
        self.program_id = program_id
        self.feed_field = feed_field
        self.slasher_address = slasher_address
        self.private_key = private_key
        self.priority_fee = priority_fee

    def build_request(
        self, action: SlashAction, target: str | None = None
    ) -> TransactionRequest:
        """Build the slash transaction for an action.

        :param action: PROVIDER or AGGREGATOR.
        :param target: Provider address, required for PROVIDER.
        :returns: TransactionRequest with a public fee.
        :raises ConfigurationError: If a provider slash has no target.
        """
        if action is SlashAction.PROVIDER:
            if not target:
                raise ConfigurationError("Slashing a provider requires a target address")
            inputs = (self.feed_field, target, self.slasher_address)
        else:
            inputs = (self.feed_field, self.slasher_address)

        return TransactionRequest(
            program_id=self.program_id,
            function_name=action.function_name,
            inputs=inputs,
            private_key=self.private_key,
            private_fee=False,
            priority_fee=self.priority_fee,
        )

    async def slash_provider(self, target: str) -> str:
        """Execute ``slash_provider`` against a provider address.

        :returns: Transaction identifier.
        """
        logger.info(f"Slashing provider {target} on feed {self.feed_field}")
        return await self.chain.execute(self.build_request(SlashAction.PROVIDER, target))

    async def slash_aggregator(self) -> str:
        """Execute ``slash_aggregator`` for the feed.

        :returns: Transaction identifier.
        """
        logger.info(f"Slashing aggregator on feed {self.feed_field}")
        return await self.chain.execute(self.build_request(SlashAction.AGGREGATOR))

    async def run(
        self, action: SlashAction | str, target: str | None = None
    ) -> ConfirmationOutcome:
        """Slash and wait for the transaction to be accepted.

        :param action: "provider" or "aggregator".
        :param target: Provider address for a provider slash.
        :returns: Accepted ConfirmationOutcome.
        :raises ChainCallError: If the call could not be broadcast.
        :raises TransactionRejectedError: If the chain rejected it.
        :raises ConfirmationTimeoutError: If it was never confirmed.
        """
        action = SlashAction(action)
        if action is SlashAction.PROVIDER:
            if not target:
                raise ConfigurationError("Slashing a provider requires a target address")
            tx_id = await self.slash_provider(target)
        else:
            tx_id = await self.slash_aggregator()

        logger.info(f"Waiting for confirmation of {tx_id}")
        outcome = await self.waiter.wait(tx_id)
        return outcome.raise_for_status()
