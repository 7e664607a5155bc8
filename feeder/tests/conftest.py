"""Shared fixtures for feeder tests."""

from collections.abc import Callable

import bech32
import pytest

from feeder.src.ChainClient import ChainClient, TransactionRequest
from feeder.src.Confirmation import ConfirmationOutcome, ConfirmationStatus
from feeder.src.Explorer import ExplorerHTTPError
from feeder.src.fixed_point import ADDRESS_HRP, BECH32M_CONST


def _encode_address(payload: bytes, hrp: str) -> str:
    data = bech32.convertbits(payload, 8, 5, True)
    polymod = bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + data + [0] * 6)
    polymod ^= BECH32M_CONST
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(bech32.CHARSET[d] for d in data + checksum)


@pytest.fixture
def make_address() -> Callable[..., str]:
    """Build a valid bech32m address.

    An int seed fills the 32-byte payload with that byte; bytes are used as-is.
    """

    def _make(seed: int | bytes = 1, hrp: str = ADDRESS_HRP) -> str:
        payload = seed if isinstance(seed, bytes) else bytes([seed % 256]) * 32
        return _encode_address(payload, hrp)

    return _make


@pytest.fixture
def private_key() -> str:
    return "APrivateKey1zkpTestKeyNotARealKey000000000000000000"


class FakeChain(ChainClient):
    """In-memory chain client.

    Mapping reads are served from ``mappings`` keyed by
    (program_id, mapping_name, comma-joined key). Executions are recorded and
    return sequential transaction ids; functions listed in ``failing`` raise.
    """

    def __init__(self) -> None:
        self.mappings: dict[tuple[str, str, str], str | None] = {}
        self.executed: list[TransactionRequest] = []
        self.failing: set[str] = set()
        self.closed = False

    async def execute_transaction(self, request: TransactionRequest) -> str:
        if request.function_name in self.failing:
            raise RuntimeError("insufficient public balance")
        self.executed.append(request)
        return f"at1tx{len(self.executed)}"

    async def read_mapping_value(
        self, program_id: str, mapping_name: str, args: list[str]
    ) -> str | None:
        key = (program_id, mapping_name, ",".join(args))
        if key not in self.mappings:
            raise ExplorerHTTPError(404, "not found")
        return self.mappings[key]

    async def aclose(self) -> None:
        self.closed = True


class FakeWaiter:
    """Confirmation waiter returning a fixed status for every transaction."""

    def __init__(self, status: ConfirmationStatus = ConfirmationStatus.ACCEPTED) -> None:
        self.status = status
        self.waited: list[str] = []

    async def wait(self, tx_id: str) -> ConfirmationOutcome:
        self.waited.append(tx_id)
        return ConfirmationOutcome(tx_id=tx_id, status=self.status, attempts=1)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def waiter() -> FakeWaiter:
    return FakeWaiter()
