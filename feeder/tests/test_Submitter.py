"""Unit tests for the on-chain submitter and the staking call."""

import asyncio

import pytest

from feeder.src.Confirmation import ConfirmationStatus
from feeder.src.errors import ChainCallError, TransactionRejectedError
from feeder.src.Staker import stake
from feeder.src.Submitter import OnChainSubmitter

PROVIDER = "aleo1provider"
KEY = "APrivateKey1zkpProvider"


class TestOnChainSubmitter:
    """Test submit_price execution and confirmation."""

    def test_build_request(self, chain, waiter) -> None:
        submitter = OnChainSubmitter(chain, waiter, "submit.aleo", priority_fee=3)
        request = submitter.build_request("12field", 421300000000000000, PROVIDER, KEY)

        assert request.program_id == "submit.aleo"
        assert request.function_name == "submit_price"
        assert request.inputs == ("12field", "421300000000000000u128", PROVIDER)
        assert request.private_key == KEY
        assert request.priority_fee == 3
        assert not request.private_fee

    def test_submit_returns_tx_id(self, chain, waiter) -> None:
        submitter = OnChainSubmitter(chain, waiter, "submit.aleo")
        tx_id = asyncio.run(submitter.submit("12field", 10, PROVIDER, KEY))
        assert tx_id == "at1tx1"
        assert len(chain.executed) == 1

    def test_submit_failure_propagates(self, chain, waiter) -> None:
        chain.failing.add("submit_price")
        submitter = OnChainSubmitter(chain, waiter, "submit.aleo")
        with pytest.raises(ChainCallError):
            asyncio.run(submitter.submit("12field", 10, PROVIDER, KEY))

    def test_confirm_returns_outcome(self, chain, waiter) -> None:
        waiter.status = ConfirmationStatus.REJECTED
        submitter = OnChainSubmitter(chain, waiter, "submit.aleo")

        outcome = asyncio.run(submitter.confirm("at1tx1"))

        assert outcome.status is ConfirmationStatus.REJECTED
        assert waiter.waited == ["at1tx1"]


class TestStake:
    """Test the staking call."""

    def test_stake(self, chain, waiter) -> None:
        outcome = asyncio.run(
            stake(chain, waiter, "stake.aleo", "12field", "1000000u64", PROVIDER, KEY)
        )

        assert outcome.accepted
        (request,) = chain.executed
        assert request.function_name == "stake"
        assert request.inputs == ("12field", "1000000u64", PROVIDER)

    def test_stake_rejected(self, chain, waiter) -> None:
        waiter.status = ConfirmationStatus.REJECTED
        with pytest.raises(TransactionRejectedError):
            asyncio.run(
                stake(chain, waiter, "stake.aleo", "12field", "1000000u64", PROVIDER, KEY)
            )
