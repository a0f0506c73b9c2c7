"""
Blockchain encoding utilities for the retryable tracker.

This module reproduces the child chain's serialization of the synthetic
submit-retryable transaction (type 0x69) so its hash can be derived offline
from parent-chain data.
"""

import logging
from typing import Union

import rlp
from hexbytes import HexBytes
from web3 import Web3

from ..errors import DerivationInputIncomplete
from ..models import DerivedTransactionRecord

logger = logging.getLogger(__name__)

# Arbitrum submit-retryable transactions have type 0x69
SUBMIT_RETRYABLE_TX_TYPE = 0x69
SEQUENCE_NUMBER_SIZE = 32
ZERO_ADDRESS = b'\x00' * 20


class BlockchainEncoder:
    """Utilities for encoding the submit-retryable transaction."""

    @staticmethod
    def to_bytes_safe(value: Union[HexBytes, bytes, str]) -> bytes:
        """
        Safely convert value to bytes, handling HexBytes, bytes, and hex strings.

        Args:
            value: Value to convert (HexBytes, bytes, or hex string)

        Returns:
            Bytes representation
        """
        if isinstance(value, HexBytes):
            return bytes(value)
        elif isinstance(value, bytes):
            return value
        else:
            return Web3.to_bytes(hexstr=value)

    @staticmethod
    def encode_quantity(value: int) -> bytes:
        """
        Minimal big-endian encoding of a non-negative integer.

        Zero encodes to empty bytes, 1 encodes to b'\\x01'.

        Args:
            value: Integer to encode

        Returns:
            Big-endian bytes without leading zeros
        """
        if value < 0:
            raise ValueError(f"Cannot encode negative quantity {value}")
        return value.to_bytes((value.bit_length() + 7) // 8, byteorder='big')

    @staticmethod
    def encode_sequence_number(value: int) -> bytes:
        """
        Fixed-width encoding of the inbox sequence number.

        The child chain stores it as a 32-byte request id, so it is never
        trimmed, not even for zero.

        Args:
            value: Inbox message index

        Returns:
            32 big-endian bytes
        """
        return value.to_bytes(SEQUENCE_NUMBER_SIZE, byteorder='big')

    @staticmethod
    def encode_retry_to(destination: Union[HexBytes, bytes, str]) -> bytes:
        """
        Encode the destination of the retry.

        A zero destination is a nil retry-to address on the child chain and
        serializes as an empty string.
        """
        dest_bytes = BlockchainEncoder.to_bytes_safe(destination)
        return b'' if dest_bytes == ZERO_ADDRESS else dest_bytes

    @staticmethod
    def submit_retryable_fields(record: DerivedTransactionRecord) -> list[bytes]:
        """
        Build the 13 RLP fields of the submit-retryable transaction.

        Args:
            record: All derivation inputs

        Returns:
            Fields in the order the child chain serializes them

        Raises:
            DerivationInputIncomplete: If any input is None
        """
        if missing := record.missing_fields():
            raise DerivationInputIncomplete(
                f"Cannot derive submit-retryable hash, missing fields: {', '.join(missing)}",
                {"sequence_number": record.sequence_number, "missing": missing},
            )

        encode = BlockchainEncoder.encode_quantity
        to_bytes = BlockchainEncoder.to_bytes_safe

        return [
            encode(record.child_chain_id),                                      # 0 chainId
            BlockchainEncoder.encode_sequence_number(record.sequence_number),   # 1 requestId
            to_bytes(record.sender),                                            # 2 from
            encode(record.base_fee),                                            # 3 l1BaseFee
            encode(record.call_value),                                          # 4 depositValue
            encode(record.max_fee_per_gas),                                     # 5 gasFeeCap
            encode(record.gas_limit),                                           # 6 gas
            BlockchainEncoder.encode_retry_to(record.destination),              # 7 retryTo
            encode(record.child_call_value),                                    # 8 retryValue
            to_bytes(record.call_value_refund_address),                         # 9 beneficiary
            encode(record.max_submission_fee),                                  # 10 maxSubmissionFee
            to_bytes(record.excess_fee_refund_address),                         # 11 feeRefundAddr
            bytes(record.call_data),                                            # 12 retryData
        ]

    @staticmethod
    def encode_submit_retryable_tx(record: DerivedTransactionRecord) -> bytes:
        """
        Serialize the submit-retryable transaction as type byte plus RLP list.

        Args:
            record: All derivation inputs

        Returns:
            0x69 followed by the RLP encoding of the 13 fields
        """
        fields = BlockchainEncoder.submit_retryable_fields(record)
        return bytes([SUBMIT_RETRYABLE_TX_TYPE]) + rlp.encode(fields)

    @staticmethod
    def submit_retryable_tx_hash(record: DerivedTransactionRecord) -> str:
        """
        Derive the child-chain hash of the ticket creation transaction.

        Args:
            record: All derivation inputs

        Returns:
            0x-prefixed Keccak-256 hash
        """
        encoded = BlockchainEncoder.encode_submit_retryable_tx(record)
        tx_hash = Web3.to_hex(Web3.keccak(encoded))
        logger.debug(f"Derived create hash {tx_hash} for message {record.sequence_number}")
        return tx_hash
