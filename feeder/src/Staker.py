"""Staker: Registers a provider's stake for a record."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .ChainClient import TransactionRequest

if TYPE_CHECKING:
    from .ChainClient import ChainClient
    from .Confirmation import ConfirmationOutcome, ConfirmationWaiter

logger = logging.getLogger(__name__)

STAKE_FUNCTION = "stake"


async def stake(
    chain: ChainClient,
    waiter: ConfirmationWaiter,
    program_id: str,
    record_field: str,
    amount: str,
    provider_address: str,
    private_key: str,
    priority_fee: int = 0,
) -> ConfirmationOutcome:
    """Execute ``stake`` on the staking program and wait for acceptance.

    :param chain: Chain client.
    :param waiter: Confirmation waiter.
    :param program_id: Staking program identifier.
    :param record_field: Record field literal (e.g., "12field").
    :param amount: Amount literal as the program expects it (e.g., "1000u64").
    :param provider_address: Provider's own address.
    :param private_key: Provider's signing key.
    :param priority_fee: Priority fee in microcredits (default: 0).
    :returns: Accepted ConfirmationOutcome.
    :raises ChainCallError: If the call could not be broadcast.
    :raises TransactionRejectedError: If the chain rejected it.
    :raises ConfirmationTimeoutError: If it was never confirmed.
    """
    request = TransactionRequest(
        program_id=program_id,
        function_name=STAKE_FUNCTION,
        inputs=(record_field, amount, provider_address),
        private_key=private_key,
        private_fee=False,
        priority_fee=priority_fee,
    )
    tx_id = await chain.execute(request)

    logger.info(f"Waiting for confirmation of {tx_id}")
    outcome = await waiter.wait(tx_id)
    outcome.raise_for_status()
    logger.info(f"Stake of {amount} for {record_field} accepted ({tx_id})")
    return outcome
