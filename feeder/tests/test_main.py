"""Unit tests for the command line entry point."""

import sys
from unittest.mock import AsyncMock, patch

import pytest

from feeder import main as cli


class TestMain:
    """Test command dispatch and exit codes."""

    def test_address_to_field(self, monkeypatch, capsys, make_address) -> None:
        address = make_address(bytes(31) + b"\x05")
        monkeypatch.setattr(sys, "argv", ["price-feeder", "address-to-field", address])

        cli.main()

        assert capsys.readouterr().out.strip() == "5field"

    def test_invalid_address_exits_1(self, monkeypatch) -> None:
        monkeypatch.setattr(sys, "argv", ["price-feeder", "address-to-field", "aleo1bad"])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1

    def test_configuration_error_exits_1(self, monkeypatch) -> None:
        monkeypatch.delenv("EXPLORER_ENDPOINT", raising=False)
        monkeypatch.setattr(sys, "argv", ["price-feeder", "height"])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1

    def test_height(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            ["price-feeder", "height", "--explorer-endpoint", "https://explorer.test/v1"],
        )
        with patch.object(cli, "run_height", new=AsyncMock(return_value=1234)):
            cli.main()
        assert capsys.readouterr().out.strip() == "1234"

    def test_pipeline_failure_exits_1(self, monkeypatch, make_address, private_key) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "price-feeder", "slash",
                "--explorer-endpoint", "https://explorer.test/v1",
                "--private-key", private_key,
                "--address", make_address(1),
                "--aggregate-program", "aggregate.aleo",
                "--feed-id", "7",
                "--action", "aggregator",
            ],
        )
        failing = AsyncMock(side_effect=RuntimeError("rejected"))
        with patch.object(cli, "run_slash", new=failing):
            with pytest.raises(SystemExit) as exc_info:
                cli.main()
        assert exc_info.value.code == 1
        failing.assert_awaited_once()
