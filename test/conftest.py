"""Shared fixtures for the retryable tracker tests."""

from typing import Any

import pytest
from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from retryable_tracker.config import ChildChainConfig, LookupConfig, ParentChainConfig, TrackerConfig
from retryable_tracker.errors import LookupFailure
from retryable_tracker.event_correlator import (
    INBOX_MESSAGE_DELIVERED_TOPIC,
    MESSAGE_DELIVERED_DATA_TYPES,
    MESSAGE_DELIVERED_TOPIC,
)
from retryable_tracker.status_classifier import REDEEM_SCHEDULED_TOPIC

DESTINATION = Web3.to_checksum_address("0x742d35cc6634c0532925a3b844bc9e7595f0beb7")
REFUND_ADDRESS = Web3.to_checksum_address("0x85bfe05492afc3d04ff3b2ca6771acf6f853d90d")
SENDER = Web3.to_checksum_address("0xdcc23a03e6b6aa254ca5b0be942dd5cafc9a2299")
INBOX = Web3.to_checksum_address("0x1f54b7af3a462aabed01d5910a3e5911e76d4b51")
BRIDGE = Web3.to_checksum_address("0x9f983f759d511d0f404582b0bdc1994edb5db856")
CHILD_CHAIN_ID = 412346


def word(value: int | str) -> bytes:
    """32-byte big-endian word of an int or an address."""
    if isinstance(value, str):
        value = int(value, 16)
    return value.to_bytes(32, byteorder='big')


class FakeChildClient:
    """In-memory receipt source keyed by lowercase transaction hash."""

    def __init__(self, receipts: dict[str, Any] | None = None, failing: set[str] | None = None):
        self.receipts = {k.lower(): v for k, v in (receipts or {}).items()}
        self.failing = {h.lower() for h in (failing or set())}
        self.calls: list[str] = []

    async def get_receipt(self, tx_hash: str):
        self.calls.append(tx_hash)
        if tx_hash.lower() in self.failing:
            raise LookupFailure(f"Failed to fetch receipt {tx_hash}", {"tx_hash": tx_hash})
        return self.receipts.get(tx_hash.lower())


@pytest.fixture
def message_payload():
    """Factory for submit-retryable message payloads."""
    def build(
        call_data: bytes = b'',
        destination: str = DESTINATION,
        child_call_value: int = 10**15,
        call_value: int = 2 * 10**15,
        max_submission_fee: int = 123456,
        excess_fee_refund_address: str = REFUND_ADDRESS,
        call_value_refund_address: str = REFUND_ADDRESS,
        gas_limit: int = 100000,
        max_fee_per_gas: int = 300000000,
        declared_length: int | None = None,
    ) -> bytes:
        length = len(call_data) if declared_length is None else declared_length
        header = b''.join([
            word(destination),
            word(child_call_value),
            word(call_value),
            word(max_submission_fee),
            word(excess_fee_refund_address),
            word(call_value_refund_address),
            word(gas_limit),
            word(max_fee_per_gas),
            word(length),
        ])
        return header + call_data
    return build


@pytest.fixture
def delivery_log():
    """Factory for raw InboxMessageDelivered logs."""
    def build(sequence_number: int, data: bytes, block_number: int = 100, tx_hash: str | None = None):
        tx_hash = tx_hash or "0x" + f"{sequence_number:x}".rjust(64, "a")
        return {
            'address': INBOX,
            'topics': [HexBytes(INBOX_MESSAGE_DELIVERED_TOPIC), HexBytes(word(sequence_number))],
            'data': HexBytes(encode(['bytes'], [data])),
            'transactionHash': HexBytes(tx_hash),
            'blockNumber': block_number,
        }
    return build


@pytest.fixture
def accounting_log():
    """Factory for raw Bridge MessageDelivered logs."""
    def build(
        sequence_number: int,
        kind: int = 9,
        sender: str = SENDER,
        base_fee: int = 25 * 10**9,
        timestamp: int = 1_700_000_000,
    ):
        data = encode(
            MESSAGE_DELIVERED_DATA_TYPES,
            [INBOX, kind, sender, b'\x11' * 32, base_fee, timestamp],
        )
        return {
            'address': BRIDGE,
            'topics': [
                HexBytes(MESSAGE_DELIVERED_TOPIC),
                HexBytes(word(sequence_number)),
                HexBytes(b'\x22' * 32),
            ],
            'data': HexBytes(data),
            'blockNumber': 100,
        }
    return build


@pytest.fixture
def receipt():
    """Factory for child-chain receipts."""
    def build(status: int = 1, retry_tx_hash: str | None = None, extra_logs: list | None = None):
        logs = list(extra_logs or [])
        if retry_tx_hash is not None:
            logs.append({
                'topics': [
                    HexBytes(REDEEM_SCHEDULED_TOPIC),
                    HexBytes(b'\x33' * 32),
                    HexBytes(retry_tx_hash),
                    HexBytes(word(7)),
                ],
                'data': HexBytes(b''),
            })
        return {'status': status, 'logs': logs}
    return build


@pytest.fixture
def tracker_config():
    """A valid tracker configuration."""
    return TrackerConfig(
        parent_chain=ParentChainConfig(
            chain_id=11155111,
            rpc_url="https://parent.rpc",
            inbox_address=INBOX,
            bridge_address=BRIDGE,
        ),
        child_chain=ChildChainConfig(
            chain_id=CHILD_CHAIN_ID,
            rpc_url="https://child.rpc",
            name="Test Orbit",
        ),
        lookups=LookupConfig(max_concurrent_lookups=4),
    )
