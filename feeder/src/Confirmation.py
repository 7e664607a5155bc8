"""Confirmation: Bounded polling of transaction confirmation status.

The waiter polls the explorer at a fixed interval until the transaction is
accepted or rejected, the attempt ceiling is reached, or the wall-clock
deadline expires. Poll errors (network failures, non-2xx, 404 while the
transaction is still unconfirmed) are logged and retried. The final state is
returned as a ConfirmationOutcome instead of being raised.

.. code-block:: python

    waiter = ConfirmationWaiter(explorer, RetryPolicy(interval=10, max_attempts=50))
    outcome = await waiter.wait(tx_id)
    if outcome.status is ConfirmationStatus.ACCEPTED:
        ...
    outcome.raise_for_status()  # for callers that prefer exceptions
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

from .errors import ConfirmationTimeoutError, TransactionRejectedError

if TYPE_CHECKING:
    from .Explorer import ExplorerClient

logger = logging.getLogger(__name__)


class ConfirmationStatus(str, Enum):
    """Confirmation state of a transaction."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMEOUT = "timeout"

    @classmethod
    def from_explorer(cls, raw: str) -> ConfirmationStatus:
        """Map an explorer status string; anything non-terminal is pending."""
        normalized = raw.strip().lower()
        if normalized == "accepted":
            return cls.ACCEPTED
        if normalized == "rejected":
            return cls.REJECTED
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not ConfirmationStatus.PENDING


@dataclass(frozen=True)
class RetryPolicy:
    """How long and how often to poll for confirmation.

    :ivar interval: Seconds between polls.
    :ivar max_attempts: Poll ceiling, or None for no ceiling.
    :ivar deadline: Overall wall-clock budget in seconds, or None for none.
    """

    interval: float = 10.0
    max_attempts: int | None = 50
    deadline: float | None = 600.0

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError("deadline must be positive")
        if self.max_attempts is None and self.deadline is None:
            raise ValueError("either max_attempts or deadline must bound the poll")


@dataclass(frozen=True)
class ConfirmationOutcome:
    """Terminal result of a confirmation wait.

    :ivar tx_id: Transaction identifier.
    :ivar status: ACCEPTED, REJECTED or TIMEOUT.
    :ivar attempts: Number of polls performed.
    """

    tx_id: str
    status: ConfirmationStatus
    attempts: int

    @property
    def accepted(self) -> bool:
        return self.status is ConfirmationStatus.ACCEPTED

    def raise_for_status(self) -> ConfirmationOutcome:
        """Return self if accepted, otherwise raise the matching error.

        :raises TransactionRejectedError: If the chain rejected the transaction.
        :raises ConfirmationTimeoutError: If no terminal status was observed.
        """
        if self.status is ConfirmationStatus.REJECTED:
            raise TransactionRejectedError(f"Transaction {self.tx_id} was rejected")
        if self.status is not ConfirmationStatus.ACCEPTED:
            raise ConfirmationTimeoutError(
                f"Transaction {self.tx_id} not confirmed after {self.attempts} polls"
            )
        return self


@dataclass
class PollProgress:
    """Polls performed so far by one wait."""

    attempts: int = 0


class ConfirmationWaiter:
    """Polls the explorer until a transaction reaches a terminal status.

    :ivar explorer: Explorer client used for status lookups.
    :ivar policy: Retry policy bounding the wait.
    """

    def __init__(
        self,
        explorer: ExplorerClient,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the waiter.

        :param explorer: Explorer client.
        :param policy: Retry policy (default: 10s interval, 50 attempts, 10 min).
        :param sleep: Awaitable sleep function, replaceable in tests.
        """
        self.explorer = explorer
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def _poll_once(self, tx_id: str, attempt: int) -> ConfirmationStatus:
        try:
            raw = await self.explorer.transaction_status(tx_id)
        except Exception as e:
            logger.warning(
                f"Confirmation poll #{attempt} for {tx_id} failed: {e}"
            )
            return ConfirmationStatus.PENDING

        status = ConfirmationStatus.from_explorer(raw)
        logger.info(f"Confirmation poll #{attempt} for {tx_id}: {raw}")
        return status

    async def _poll_loop(self, tx_id: str, progress: PollProgress) -> ConfirmationStatus:
        max_attempts = self.policy.max_attempts
        while True:
            progress.attempts += 1
            attempt = progress.attempts
            status = await self._poll_once(tx_id, attempt)
            if status.is_terminal:
                return status
            if max_attempts is not None and attempt >= max_attempts:
                logger.error(f"Transaction {tx_id} not confirmed after {attempt} polls")
                return ConfirmationStatus.TIMEOUT
            logger.debug(f"Waiting {self.policy.interval:.0f}s before next poll")
            await self._sleep(self.policy.interval)

    async def wait(self, tx_id: str) -> ConfirmationOutcome:
        """Wait for a transaction to be accepted or rejected.

        :param tx_id: Transaction identifier.
        :returns: ConfirmationOutcome with ACCEPTED, REJECTED or TIMEOUT.
        """
        progress = PollProgress()
        try:
            status = await asyncio.wait_for(
                self._poll_loop(tx_id, progress), timeout=self.policy.deadline
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Confirmation of {tx_id} exceeded the {self.policy.deadline:.0f}s deadline"
            )
            status = ConfirmationStatus.TIMEOUT

        if status is ConfirmationStatus.REJECTED:
            logger.error(f"Transaction {tx_id} rejected")
        elif status is ConfirmationStatus.ACCEPTED:
            logger.info(f"Transaction {tx_id} accepted after {progress.attempts} polls")

        return ConfirmationOutcome(tx_id=tx_id, status=status, attempts=progress.attempts)
