"""Submitter: Publishes a provider's price to the submit program."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .ChainClient import TransactionRequest
from .fixed_point import u128_literal

if TYPE_CHECKING:
    from .ChainClient import ChainClient
    from .Confirmation import ConfirmationOutcome, ConfirmationWaiter

logger = logging.getLogger(__name__)

SUBMIT_FUNCTION = "submit_price"


class OnChainSubmitter:
    """Executes ``submit_price`` and waits for its confirmation.

    :ivar chain: Chain client used to execute transactions.
    :ivar waiter: Confirmation waiter.
    :ivar program_id: Submit program identifier.
    :ivar priority_fee: Priority fee in microcredits.
    """

    def __init__(
        self,
        chain: ChainClient,
        waiter: ConfirmationWaiter,
        program_id: str,
        priority_fee: int = 0,
    ) -> None:
        self.chain = chain
        self.waiter = waiter
        self.program_id = program_id
        self.priority_fee = priority_fee

    def build_request(
        self, record_field: str, price: int, provider_address: str, private_key: str
    ) -> TransactionRequest:
        """Build the submit_price transaction request.

        :param record_field: Record field literal (e.g., "12field").
        :param price: Price scaled by 10**18.
        :param provider_address: Provider's own address.
        :param private_key: Provider's signing key.
        :returns: TransactionRequest with a public fee.
        """
        return TransactionRequest(
            program_id=self.program_id,
            function_name=SUBMIT_FUNCTION,
            inputs=(record_field, u128_literal(price), provider_address),
            private_key=private_key,
            private_fee=False,
            priority_fee=self.priority_fee,
        )

    async def submit(
        self, record_field: str, price: int, provider_address: str, private_key: str
    ) -> str:
        """Submit a price on-chain.

        Chain client failures propagate unchanged; nothing is retried here.

        :param record_field: Record field literal.
        :param price: Price scaled by 10**18.
        :param provider_address: Provider's own address.
        :param private_key: Provider's signing key.
        :returns: Transaction identifier.
        :raises ChainCallError: If the transaction could not be broadcast.
        """
        request = self.build_request(record_field, price, provider_address, private_key)
        return await self.chain.execute(request)

    async def confirm(self, tx_id: str) -> ConfirmationOutcome:
        """Wait for a submitted transaction to reach a terminal status.

        :param tx_id: Transaction identifier.
        :returns: ConfirmationOutcome (ACCEPTED, REJECTED or TIMEOUT).
        """
        logger.info(f"Waiting for confirmation of {tx_id}")
        return await self.waiter.wait(tx_id)
