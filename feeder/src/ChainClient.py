"""ChainClient: Abstract interface for executing and reading Aleo programs."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .errors import ChainCallError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionRequest:
    """One program execution to build, prove and broadcast.

    :ivar program_id: Program identifier (e.g., "oracle_submit.aleo").
    :ivar function_name: Entry point to call.
    :ivar inputs: Ordered input literals.
    :ivar private_key: Signing key of the caller.
    :ivar private_fee: Pay the fee from a private record instead of public balance.
    :ivar priority_fee: Priority fee in microcredits.
    """

    program_id: str
    function_name: str
    inputs: tuple[str, ...]
    private_key: str
    private_fee: bool = False
    priority_fee: int = 0

    def __repr__(self) -> str:
        # Never render the signing key
        return (
            f"TransactionRequest(program_id={self.program_id!r}, "
            f"function_name={self.function_name!r}, inputs={list(self.inputs)!r}, "
            f"private_fee={self.private_fee}, priority_fee={self.priority_fee})"
        )


class ChainClient(ABC):
    """Abstract base class for chain client implementations.

    Provides the two operations the feeder needs from the chain: executing a
    program function and reading a program mapping.
    """

    @abstractmethod
    async def execute_transaction(self, request: TransactionRequest) -> str:
        """Build, prove and broadcast a transaction.

        :param request: Transaction to execute.
        :returns: Transaction identifier.
        :raises ChainCallError: If the transaction could not be broadcast.
        """
        pass

    @abstractmethod
    async def read_mapping_value(
        self, program_id: str, mapping_name: str, args: list[str]
    ) -> str | None:
        """Read a value from a program mapping.

        :param program_id: Program identifier.
        :param mapping_name: Mapping name.
        :param args: Key components, joined into the mapping key.
        :returns: Raw value string, or None if the key is absent.
        """
        pass

    async def execute(self, request: TransactionRequest) -> str:
        """Execute a transaction with logging, re-raising any failure.

        :param request: Transaction to execute.
        :returns: Transaction identifier.
        :raises ChainCallError: If execution failed for any reason.
        """
        logger.info(
            f"Executing {request.program_id}/{request.function_name} "
            f"inputs={list(request.inputs)} priority_fee={request.priority_fee}"
        )
        try:
            tx_id = await self.execute_transaction(request)
        except ChainCallError as e:
            logger.error(f"{request.function_name} failed: {e}")
            raise
        except Exception as e:
            logger.error(f"{request.function_name} failed: {e}")
            raise ChainCallError(request.function_name, str(e)) from e

        logger.info(f"{request.function_name} broadcast, tx_id={tx_id}")
        return tx_id

    async def aclose(self) -> None:
        """Release any resources held by the client."""
        pass
