"""Unit tests for the snarkOS chain client."""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from feeder.src.ChainClient import TransactionRequest
from feeder.src.ChainClientSnarkos import ChainClientSnarkos
from feeder.src.errors import ChainCallError

TX_ID = "at1" + "x" * 58
PRIVATE_KEY = "APrivateKey1zkpSecret"
KEY_FILE = "/tmp/snarkos-key-test"


def make_request(**overrides) -> TransactionRequest:
    values = dict(
        program_id="oracle_submit.aleo",
        function_name="submit_price",
        inputs=("12field", "1000u128", "aleo1provider"),
        private_key=PRIVATE_KEY,
        priority_fee=5,
    )
    values.update(overrides)
    return TransactionRequest(**values)


def make_client(network: str = "testnet", explorer=None) -> ChainClientSnarkos:
    return ChainClientSnarkos(
        explorer=explorer or MagicMock(),
        rpc_endpoint="https://node.test/v1/",
        network=network,
        snarkos_bin="/usr/local/bin/snarkos",
    )


def fake_process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.returncode = returncode
    return process


class TestTransactionRequest:
    """Test TransactionRequest rendering."""

    def test_repr_hides_private_key(self) -> None:
        assert PRIVATE_KEY not in repr(make_request())
        assert "submit_price" in repr(make_request())


class TestBuildCommand:
    """Test snarkos argument construction."""

    def test_command(self) -> None:
        command = make_client().build_command(make_request(), KEY_FILE)
        assert command == [
            "/usr/local/bin/snarkos",
            "developer",
            "execute",
            "oracle_submit.aleo",
            "submit_price",
            "12field",
            "1000u128",
            "aleo1provider",
            "--private-key-file",
            KEY_FILE,
            "--query",
            "https://node.test/v1",
            "--broadcast",
            "https://node.test/v1/testnet/transaction/broadcast",
            "--network",
            "1",
            "--priority-fee",
            "5",
        ]
        assert PRIVATE_KEY not in command

    def test_mainnet_id(self) -> None:
        command = make_client("mainnet").build_command(make_request(), KEY_FILE)
        assert command[command.index("--network") + 1] == "0"

    def test_unknown_network(self) -> None:
        with pytest.raises(ChainCallError, match="unknown network"):
            make_client("devnet").build_command(make_request(), KEY_FILE)

    def test_private_fee_unsupported(self) -> None:
        with pytest.raises(ChainCallError, match="private fees"):
            make_client().build_command(make_request(private_fee=True), KEY_FILE)


class TestParseTransactionId:
    """Test transaction id extraction."""

    def test_found(self) -> None:
        output = f"Built the transition\nExecution {TX_ID} has been broadcast\n"
        assert ChainClientSnarkos.parse_transaction_id(output) == TX_ID

    def test_last_match_wins(self) -> None:
        other = "at1" + "y" * 58
        assert ChainClientSnarkos.parse_transaction_id(f"{other}\n{TX_ID}") == TX_ID

    def test_missing(self) -> None:
        assert ChainClientSnarkos.parse_transaction_id("error: insufficient balance") is None

    def test_wrong_length(self) -> None:
        assert ChainClientSnarkos.parse_transaction_id("at1" + "x" * 20) is None


class TestExecuteTransaction:
    """Test the subprocess execution path."""

    def test_success(self) -> None:
        process = fake_process(stdout=f"✅ {TX_ID}\n".encode())
        with patch(
            "feeder.src.ChainClientSnarkos.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ) as spawn:
            tx_id = asyncio.run(make_client().execute(make_request()))

        assert tx_id == TX_ID
        assert spawn.call_args.args[0] == "/usr/local/bin/snarkos"

    def test_private_key_passed_through_owner_only_file(self) -> None:
        seen = {}

        async def spawn(*command, **kwargs):
            key_file = command[command.index("--private-key-file") + 1]
            seen["path"] = key_file
            seen["mode"] = os.stat(key_file).st_mode & 0o777
            with open(key_file) as f:
                seen["key"] = f.read()
            seen["command"] = command
            return fake_process(stdout=f"{TX_ID}\n".encode())

        with patch("feeder.src.ChainClientSnarkos.asyncio.create_subprocess_exec", new=spawn):
            asyncio.run(make_client().execute(make_request()))

        assert PRIVATE_KEY not in seen["command"]
        assert seen["key"] == PRIVATE_KEY
        assert seen["mode"] == 0o600
        assert not os.path.exists(seen["path"])

    def test_key_file_removed_on_failure(self) -> None:
        paths = []

        async def spawn(*command, **kwargs):
            paths.append(command[command.index("--private-key-file") + 1])
            return fake_process(stderr=b"boom", returncode=1)

        with patch("feeder.src.ChainClientSnarkos.asyncio.create_subprocess_exec", new=spawn):
            with pytest.raises(ChainCallError):
                asyncio.run(make_client().execute(make_request()))

        assert paths and not os.path.exists(paths[0])

    def test_non_zero_exit(self) -> None:
        process = fake_process(stderr=b"program not found", returncode=1)
        with patch(
            "feeder.src.ChainClientSnarkos.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(ChainCallError, match="program not found") as exc_info:
                asyncio.run(make_client().execute(make_request()))

        assert exc_info.value.function_name == "submit_price"

    def test_no_transaction_id(self) -> None:
        process = fake_process(stdout=b"done")
        with patch(
            "feeder.src.ChainClientSnarkos.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(ChainCallError, match="no transaction id"):
                asyncio.run(make_client().execute(make_request()))

    def test_missing_binary(self) -> None:
        with patch(
            "feeder.src.ChainClientSnarkos.asyncio.create_subprocess_exec",
            new=AsyncMock(side_effect=FileNotFoundError("snarkos")),
        ):
            with pytest.raises(ChainCallError, match="cannot start snarkos"):
                asyncio.run(make_client().execute(make_request()))


class TestReadMappingValue:
    """Test mapping reads through the explorer."""

    def test_joins_key_parts(self) -> None:
        explorer = MagicMock()
        explorer.mapping_value = AsyncMock(return_value='"aleo1abc"')

        value = asyncio.run(
            make_client(explorer=explorer).read_mapping_value(
                "oracle_stake.aleo", "provider_list", ["12field", "0"]
            )
        )

        assert value == '"aleo1abc"'
        explorer.mapping_value.assert_awaited_once_with(
            "oracle_stake.aleo", "provider_list", "12field,0"
        )
