"""ChainClientSnarkos: Chain client backed by the snarkOS CLI and the explorer.

Transactions are built, proven and broadcast by ``snarkos developer execute``;
mapping reads go straight to the explorer REST API.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile

from .ChainClient import ChainClient, TransactionRequest
from .errors import ChainCallError
from .Explorer import ExplorerClient

logger = logging.getLogger(__name__)

# snarkOS network identifiers
NETWORK_IDS: dict[str, int] = {
    "mainnet": 0,
    "testnet": 1,
    "canary": 2,
}

TX_ID_PATTERN = re.compile(r"\bat1[02-9ac-hj-np-z]{58}\b")


class ChainClientSnarkos(ChainClient):
    """Chain client that shells out to ``snarkos developer execute``.

    :ivar explorer: Explorer client used for mapping reads.
    :ivar rpc_endpoint: Node/explorer URL used to query state and broadcast.
    :ivar network: Network name (mainnet, testnet, canary).
    :ivar snarkos_bin: Path or name of the snarkos executable.
    :ivar execute_timeout: Seconds allowed for build, proof and broadcast.
    """

    DEFAULT_EXECUTE_TIMEOUT = 600.0

    def __init__(
        self,
        explorer: ExplorerClient,
        rpc_endpoint: str,
        network: str,
        snarkos_bin: str = "snarkos",
        execute_timeout: float = DEFAULT_EXECUTE_TIMEOUT,
    ) -> None:
        """Initialize the snarkOS chain client.

        :param explorer: Explorer client for mapping reads.
        :param rpc_endpoint: Base URL for state queries and broadcast.
        :param network: Network name.
        :param snarkos_bin: snarkos executable (default: "snarkos").
        :param execute_timeout: Execution timeout in seconds (default: 600).
        """
        self.explorer = explorer
        self.rpc_endpoint = rpc_endpoint.rstrip("/")
        self.network = network
        self.snarkos_bin = snarkos_bin
        self.execute_timeout = execute_timeout

    def build_command(self, request: TransactionRequest, key_file: str) -> list[str]:
        """Build the snarkos argument vector for a request.

        The signing key never appears in the argument vector; snarkos reads it
        from ``key_file``.

        :param request: Transaction to execute.
        :param key_file: Path of the file holding the private key.
        :returns: Command line as a list of arguments.
        :raises ChainCallError: If the request cannot be expressed.
        """
        if request.private_fee:
            raise ChainCallError(
                request.function_name, "private fees need a fee record and are not supported"
            )
        if self.network not in NETWORK_IDS:
            raise ChainCallError(request.function_name, f"unknown network {self.network!r}")

        return [
            self.snarkos_bin,
            "developer",
            "execute",
            request.program_id,
            request.function_name,
            *request.inputs,
            "--private-key-file",
            key_file,
            "--query",
            self.rpc_endpoint,
            "--broadcast",
            f"{self.rpc_endpoint}/{self.network}/transaction/broadcast",
            "--network",
            str(NETWORK_IDS[self.network]),
            "--priority-fee",
            str(request.priority_fee),
        ]

    @staticmethod
    def write_key_file(private_key: str) -> str:
        """Write the private key to a new file readable by the owner only.

        :returns: Path of the file. The caller removes it.
        """
        fd, path = tempfile.mkstemp(prefix="snarkos-key-")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(private_key)
        except OSError:
            os.unlink(path)
            raise
        return path

    @staticmethod
    def parse_transaction_id(output: str) -> str | None:
        """Extract the last transaction id printed by snarkos."""
        matches = TX_ID_PATTERN.findall(output)
        return matches[-1] if matches else None

    async def execute_transaction(self, request: TransactionRequest) -> str:
        """Execute a transaction through the snarkos CLI.

        :param request: Transaction to execute.
        :returns: Transaction identifier.
        :raises ChainCallError: On launch failure, non-zero exit, timeout or
            missing transaction id.
        """
        try:
            key_file = self.write_key_file(request.private_key)
        except OSError as e:
            raise ChainCallError(request.function_name, f"cannot write key file: {e}") from e
        try:
            return await self._run_snarkos(request, key_file)
        finally:
            os.unlink(key_file)

    async def _run_snarkos(self, request: TransactionRequest, key_file: str) -> str:
        command = self.build_command(request, key_file)
        logger.debug(
            "Running %s developer execute %s %s",
            self.snarkos_bin,
            request.program_id,
            request.function_name,
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ChainCallError(request.function_name, f"cannot start snarkos: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.execute_timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise ChainCallError(
                request.function_name,
                f"snarkos did not finish within {self.execute_timeout:.0f}s",
            ) from e

        out_text = stdout.decode("utf-8", errors="replace")
        err_text = stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            detail = (err_text or out_text).strip()[-500:]
            raise ChainCallError(
                request.function_name, f"snarkos exited with {process.returncode}: {detail}"
            )

        tx_id = self.parse_transaction_id(out_text) or self.parse_transaction_id(err_text)
        if tx_id is None:
            raise ChainCallError(request.function_name, "no transaction id in snarkos output")
        return tx_id

    async def read_mapping_value(
        self, program_id: str, mapping_name: str, args: list[str]
    ) -> str | None:
        """Read a mapping value through the explorer.

        Multi-part keys are comma-joined into a single key string.

        :param program_id: Program identifier.
        :param mapping_name: Mapping name.
        :param args: Key components.
        :returns: Raw value string, or None if the key is absent.
        """
        key = ",".join(args)
        return await self.explorer.mapping_value(program_id, mapping_name, key)

    async def aclose(self) -> None:
        await self.explorer.aclose()
