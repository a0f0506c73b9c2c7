"""
Async JSON-RPC access to a parent or child chain.

Wraps an AsyncWeb3 instance and turns provider errors into LookupFailure,
while a missing receipt is reported as None.
"""

import logging
from typing import Any

from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound
from web3.types import BlockIdentifier, LogReceipt, TxReceipt

from ..errors import LookupFailure


class ChainClient:
    """
    Read-only chain access used by the tracker.

    Can be built from an RPC URL or from an existing AsyncWeb3 instance.
    """

    def __init__(self, rpc_url: str = "", w3: AsyncWeb3 | None = None, name: str = "chain"):
        """
        Initialize the ChainClient.

        Args:
            rpc_url: HTTP(S) RPC endpoint (ignored when w3 is given)
            w3: Pre-built AsyncWeb3 instance
            name: Label used in logs and errors
        """
        if w3 is None and not rpc_url:
            raise ValueError("RPC URL is required when no AsyncWeb3 instance is given")

        self.rpc_url = rpc_url
        self.name = name
        self.w3 = w3 if w3 is not None else AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def close(self) -> None:
        """Close the provider's HTTP session."""
        try:
            if hasattr(self.w3.provider, 'disconnect'):
                await self.w3.provider.disconnect()
        except Exception as e:
            self.logger.warning(f"Error closing connection to {self.name}: {e}")

    async def current_block_number(self) -> int:
        """Latest block number known to the node."""
        try:
            return int(await self.w3.eth.block_number)
        except Exception as e:
            raise LookupFailure(
                f"Failed to fetch block number from {self.name}: {e}",
                {"chain": self.name},
            ) from e

    async def get_chain_id(self) -> int:
        """Chain id reported by the node."""
        try:
            return int(await self.w3.eth.chain_id)
        except Exception as e:
            raise LookupFailure(
                f"Failed to fetch chain id from {self.name}: {e}",
                {"chain": self.name},
            ) from e

    async def get_logs(
        self,
        address: str,
        topic: str,
        from_block: BlockIdentifier,
        to_block: BlockIdentifier,
    ) -> list[LogReceipt]:
        """
        Fetch logs of one event emitted by one contract.

        Args:
            address: Emitting contract
            topic: Event signature hash (topic 0)
            from_block: First block, or "earliest"
            to_block: Last block, or "latest"

        Returns:
            Raw logs in node order
        """
        filter_params: dict[str, Any] = {
            "address": Web3.to_checksum_address(address),
            "topics": [topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        self.logger.debug(f"eth_getLogs on {self.name}: {filter_params}")

        try:
            logs = await self.w3.eth.get_logs(filter_params)
        except Exception as e:
            raise LookupFailure(
                f"Failed to fetch logs from {self.name}: {e}",
                {"chain": self.name, "address": address, "from_block": from_block, "to_block": to_block},
            ) from e

        self.logger.debug(f"Fetched {len(logs)} logs from {address} on {self.name}")
        return list(logs)

    async def get_receipt(self, tx_hash: str) -> TxReceipt | None:
        """
        Fetch a transaction receipt.

        Args:
            tx_hash: 0x-prefixed transaction hash

        Returns:
            The receipt, or None if the node does not know the transaction

        Raises:
            LookupFailure: If the RPC call itself fails
        """
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            self.logger.debug(f"No receipt for {tx_hash} on {self.name}")
            return None
        except Exception as e:
            raise LookupFailure(
                f"Failed to fetch receipt {tx_hash} from {self.name}: {e}",
                {"chain": self.name, "tx_hash": tx_hash},
            ) from e
