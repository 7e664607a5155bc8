"""Unit tests for Confirmation."""

import asyncio

import pytest

from feeder.src.Confirmation import (
    ConfirmationOutcome,
    ConfirmationStatus,
    ConfirmationWaiter,
    RetryPolicy,
)
from feeder.src.errors import ConfirmationTimeoutError, TransactionRejectedError
from feeder.src.Explorer import ExplorerError

TX_ID = "at1" + "q" * 58


class ScriptedExplorer:
    """Explorer stand-in returning (or raising) scripted statuses in order.

    The last entry repeats once the script is exhausted.
    """

    def __init__(self, script: list):
        self.script = script
        self.calls = 0

    async def transaction_status(self, tx_id: str) -> str:
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if isinstance(step, Exception):
            raise step
        return step


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetryPolicy:
    """Test RetryPolicy validation."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.interval == 10.0
        assert policy.max_attempts == 50
        assert policy.deadline == 600.0

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(interval=-1)
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(deadline=0)
        with pytest.raises(ValueError, match="must bound the poll"):
            RetryPolicy(max_attempts=None, deadline=None)


class TestConfirmationStatus:
    """Test explorer status mapping."""

    def test_from_explorer(self) -> None:
        assert ConfirmationStatus.from_explorer("accepted") is ConfirmationStatus.ACCEPTED
        assert ConfirmationStatus.from_explorer("Rejected") is ConfirmationStatus.REJECTED
        assert ConfirmationStatus.from_explorer("pending") is ConfirmationStatus.PENDING
        assert ConfirmationStatus.from_explorer("") is ConfirmationStatus.PENDING

    def test_is_terminal(self) -> None:
        assert not ConfirmationStatus.PENDING.is_terminal
        assert ConfirmationStatus.ACCEPTED.is_terminal
        assert ConfirmationStatus.TIMEOUT.is_terminal


class TestConfirmationOutcome:
    """Test raise_for_status."""

    def test_accepted_returns_self(self) -> None:
        outcome = ConfirmationOutcome(TX_ID, ConfirmationStatus.ACCEPTED, 1)
        assert outcome.raise_for_status() is outcome
        assert outcome.accepted

    def test_rejected_raises(self) -> None:
        outcome = ConfirmationOutcome(TX_ID, ConfirmationStatus.REJECTED, 2)
        with pytest.raises(TransactionRejectedError):
            outcome.raise_for_status()

    def test_timeout_raises(self) -> None:
        outcome = ConfirmationOutcome(TX_ID, ConfirmationStatus.TIMEOUT, 50)
        with pytest.raises(ConfirmationTimeoutError, match="50 polls"):
            outcome.raise_for_status()


class TestConfirmationWaiter:
    """Test bounded confirmation polling."""

    def test_pending_three_times_then_accepted(self) -> None:
        explorer = ScriptedExplorer(["pending", "pending", "pending", "accepted"])
        sleep = RecordingSleep()
        waiter = ConfirmationWaiter(explorer, RetryPolicy(interval=10), sleep=sleep)

        outcome = asyncio.run(waiter.wait(TX_ID))

        assert outcome.status is ConfirmationStatus.ACCEPTED
        assert outcome.attempts == 4
        assert explorer.calls == 4
        assert sleep.delays == [10, 10, 10]

    def test_rejected(self) -> None:
        explorer = ScriptedExplorer(["pending", "rejected"])
        waiter = ConfirmationWaiter(explorer, sleep=RecordingSleep())

        outcome = asyncio.run(waiter.wait(TX_ID))

        assert outcome.status is ConfirmationStatus.REJECTED
        assert outcome.attempts == 2

    def test_poll_errors_are_retried(self) -> None:
        explorer = ScriptedExplorer(
            [ExplorerError("HTTP 404: not found"), RuntimeError("reset"), "accepted"]
        )
        waiter = ConfirmationWaiter(explorer, sleep=RecordingSleep())

        outcome = asyncio.run(waiter.wait(TX_ID))

        assert outcome.status is ConfirmationStatus.ACCEPTED
        assert outcome.attempts == 3

    def test_attempt_ceiling(self) -> None:
        explorer = ScriptedExplorer(["pending"])
        sleep = RecordingSleep()
        waiter = ConfirmationWaiter(
            explorer, RetryPolicy(interval=1, max_attempts=5, deadline=None), sleep=sleep
        )

        outcome = asyncio.run(waiter.wait(TX_ID))

        assert outcome.status is ConfirmationStatus.TIMEOUT
        assert outcome.attempts == 5
        assert explorer.calls == 5
        assert len(sleep.delays) == 4

    def test_deadline(self) -> None:
        explorer = ScriptedExplorer(["pending"])
        waiter = ConfirmationWaiter(
            explorer, RetryPolicy(interval=0.01, max_attempts=None, deadline=0.1)
        )

        outcome = asyncio.run(waiter.wait(TX_ID))

        assert outcome.status is ConfirmationStatus.TIMEOUT
        assert outcome.attempts >= 1
        assert outcome.attempts == explorer.calls

    def test_attempts_counted_per_wait(self) -> None:
        explorer = ScriptedExplorer(["pending", "pending", "accepted"])
        waiter = ConfirmationWaiter(explorer, RetryPolicy(interval=0), sleep=RecordingSleep())

        first = asyncio.run(waiter.wait(TX_ID))
        second = asyncio.run(waiter.wait(TX_ID))

        assert first.attempts == 3
        assert second.attempts == 1

    def test_never_raises_on_timeout(self) -> None:
        explorer = ScriptedExplorer([ExplorerError("down")])
        waiter = ConfirmationWaiter(
            explorer, RetryPolicy(interval=0, max_attempts=3), sleep=RecordingSleep()
        )
        outcome = asyncio.run(waiter.wait(TX_ID))
        assert outcome.status is ConfirmationStatus.TIMEOUT
