"""Coordinator: Reconciles provider submissions into a proposed median.

One aggregation round:
    1. Read the active provider count from the staking program
    2. Read every provider's address and submitted price concurrently
    3. Compute the median of the prices that could be read
    4. Execute ``propose`` with the median
    5. Execute ``finalize_aggregate``

Unreadable providers are logged and excluded. With confirmation enabled
(the default) each call must be accepted before the round moves on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .ChainClient import TransactionRequest
from .errors import NoDataError
from .fixed_point import from_fixed, parse_integer_literal, u128_literal
from .PriceAggregator import median

if TYPE_CHECKING:
    from .ChainClient import ChainClient
    from .Confirmation import ConfirmationOutcome, ConfirmationWaiter

logger = logging.getLogger(__name__)

# Mapping and function names of the staking, submit and aggregate programs
PROVIDER_COUNT_MAPPING = "provider_count"
PROVIDER_LIST_MAPPING = "provider_list"
TEMP_PRICE_MAPPING = "temp_price"
PROPOSE_FUNCTION = "propose"
FINALIZE_FUNCTION = "finalize_aggregate"


@dataclass(frozen=True)
class AggregationRound:
    """Summary of a completed aggregation round.

    :ivar provider_prices: Price read for each provider address.
    :ivar median_price: Median that was proposed.
    :ivar propose_tx: Transaction id of the propose call.
    :ivar finalize_tx: Transaction id of the finalize call.
    """

    provider_prices: dict[str, int]
    median_price: int
    propose_tx: str
    finalize_tx: str


class AggregationCoordinator:
    """Drives the propose -> finalize sequence for one record.

    :ivar chain: Chain client for mapping reads and executions.
    :ivar waiter: Confirmation waiter, or None for fire-and-forget calls.
    :ivar record_field: Record field literal keying the mappings.
    :ivar address: Caller's address.
    """

    def __init__(
        self,
        chain: ChainClient,
        waiter: ConfirmationWaiter | None,
        stake_program_id: str,
        submit_program_id: str,
        aggregate_program_id: str,
        record_field: str,
        address: str,
        private_key: str,
        priority_fee: int = 0,
    ) -> None:
        """Initialize the coordinator.

        :param chain: Chain client.
        :param waiter: Confirmation waiter; None skips confirmation waits.
        :param stake_program_id: Staking program holding the provider registry.
        :param submit_program_id: Submit program holding provider prices.
        :param aggregate_program_id: Aggregation program (propose/finalize).
        :param record_field: Record field literal (e.g., "12field").
        :param address: Caller's address.
        :param private_key: Caller's signing key.
        :param priority_fee: Priority fee in microcredits (default: 0).
        """
        self.chain = chain
        self.waiter = waiter
        self.stake_program_id = stake_program_id
        self.submit_program_id = submit_program_id
        self.aggregate_program_id = aggregate_program_id
        self.record_field = record_field
        self.address = address
        self.private_key = private_key
        self.priority_fee = priority_fee

    async def get_provider_count(self) -> int:
        """Read the number of active providers for the record.

        :returns: Provider count (at least 1).
        :raises NoDataError: If the count is missing, unparsable or zero.
        """
        raw = await self.chain.read_mapping_value(
            self.stake_program_id, PROVIDER_COUNT_MAPPING, [self.record_field]
        )
        try:
            count = parse_integer_literal(raw)
        except ValueError as e:
            raise NoDataError(f"No active providers ({e})") from e
        if count <= 0:
            raise NoDataError("No active providers")
        return count

    async def _read_provider(self, index: int) -> tuple[str, int]:
        address = await self.chain.read_mapping_value(
            self.stake_program_id,
            PROVIDER_LIST_MAPPING,
            [self.record_field, str(index)],
        )
        if not address:
            raise NoDataError(f"Provider {index} missing from {PROVIDER_LIST_MAPPING}")
        address = address.strip().strip('"')

        raw_price = await self.chain.read_mapping_value(
            self.submit_program_id,
            TEMP_PRICE_MAPPING,
            [self.record_field + address],
        )
        return address, parse_integer_literal(raw_price)

    async def get_provider_prices(self, provider_count: int) -> dict[str, int]:
        """Read every provider's submitted price concurrently.

        Failures are logged per provider and never abort the batch.

        :param provider_count: Number of providers to read.
        :returns: Dict mapping provider address to price (possibly empty).
        """
        outcomes = await asyncio.gather(
            *(self._read_provider(i) for i in range(provider_count)),
            return_exceptions=True,
        )

        prices: dict[str, int] = {}
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Provider {index}: price unreadable: {outcome}")
                continue
            address, price = outcome
            logger.info(f"Provider {address}: {price} ({from_fixed(price)})")
            prices[address] = price
        return prices

    def _request(self, function_name: str, inputs: tuple[str, ...]) -> TransactionRequest:
        return TransactionRequest(
            program_id=self.aggregate_program_id,
            function_name=function_name,
            inputs=inputs,
            private_key=self.private_key,
            private_fee=False,
            priority_fee=self.priority_fee,
        )

    async def _execute_and_confirm(self, request: TransactionRequest) -> str:
        tx_id = await self.chain.execute(request)
        if self.waiter is not None:
            outcome: ConfirmationOutcome = await self.waiter.wait(tx_id)
            outcome.raise_for_status()
        return tx_id

    async def propose(self, median_price: int) -> str:
        """Propose the median price for the record.

        :param median_price: Median scaled by 10**18.
        :returns: Transaction identifier.
        """
        request = self._request(
            PROPOSE_FUNCTION,
            (self.record_field, u128_literal(median_price), self.address),
        )
        try:
            return await self._execute_and_confirm(request)
        except Exception as e:
            logger.error(f"Failed to propose median {median_price}: {e}")
            raise

    async def finalize(self) -> str:
        """Finalize the aggregation round for the record.

        :returns: Transaction identifier.
        """
        request = self._request(FINALIZE_FUNCTION, (self.record_field, self.address))
        try:
            return await self._execute_and_confirm(request)
        except Exception as e:
            logger.error(f"Failed to finalize aggregation: {e}")
            raise

    async def run(self) -> AggregationRound:
        """Run one complete aggregation round.

        :returns: AggregationRound summary.
        :raises NoDataError: If there are no providers or no readable prices.
        :raises ChainCallError: If propose or finalize could not be executed.
        :raises TransactionRejectedError: If a confirmed call was rejected.
        :raises ConfirmationTimeoutError: If a confirmation never arrived.
        """
        provider_count = await self.get_provider_count()
        logger.info(f"{provider_count} active providers for {self.record_field}")

        provider_prices = await self.get_provider_prices(provider_count)
        if not provider_prices:
            raise NoDataError("No provider price found for this aggregation window")

        median_price = median(list(provider_prices.values()))
        logger.info(
            f"Median of {len(provider_prices)} providers: {median_price} "
            f"({from_fixed(median_price)})"
        )

        propose_tx = await self.propose(median_price)
        finalize_tx = await self.finalize()

        return AggregationRound(
            provider_prices=provider_prices,
            median_price=median_price,
            propose_tx=propose_tx,
            finalize_tx=finalize_tx,
        )
