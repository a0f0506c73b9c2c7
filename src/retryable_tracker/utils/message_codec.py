"""
Decoding of submit-retryable inbox messages.

The InboxMessageDelivered payload of a retryable submission is nine 32-byte
big-endian words followed by the raw call data:

    destination | child call value | call value | max submission fee |
    excess fee refund address | call value refund address | gas limit |
    max fee per gas | call data length | call data
"""

import logging
from typing import Union

from hexbytes import HexBytes
from web3 import Web3

from ..errors import MalformedPayload
from ..models import RetryableSubmission

logger = logging.getLogger(__name__)

WORD_SIZE = 32
HEADER_WORDS = 9
HEADER_SIZE = WORD_SIZE * HEADER_WORDS
ADDRESS_SIZE = 20


class MessageCodec:
    """Parses raw inbox message bytes into RetryableSubmission records."""

    @staticmethod
    def to_bytes(raw: Union[HexBytes, bytes, str]) -> bytes:
        """
        Convert a payload to bytes, accepting HexBytes, bytes, or hex strings.

        Args:
            raw: Message payload

        Returns:
            Bytes representation

        Raises:
            MalformedPayload: If a string is not valid hex
        """
        if isinstance(raw, (bytes, bytearray)):
            return bytes(raw)
        try:
            return Web3.to_bytes(hexstr=raw)
        except (TypeError, ValueError) as e:
            raise MalformedPayload(f"Message data is not valid hex: {e}") from e

    @staticmethod
    def read_word(payload: bytes, index: int) -> int:
        """Read the 32-byte big-endian word at position `index`."""
        start = index * WORD_SIZE
        return int.from_bytes(payload[start:start + WORD_SIZE], byteorder='big')

    @staticmethod
    def word_to_address(word: int) -> str:
        """Checksummed address from the low 20 bytes of a word."""
        low_bytes = (word & ((1 << (8 * ADDRESS_SIZE)) - 1)).to_bytes(ADDRESS_SIZE, byteorder='big')
        return Web3.to_checksum_address('0x' + low_bytes.hex())

    @classmethod
    def decode(cls, raw: Union[HexBytes, bytes, str]) -> RetryableSubmission:
        """
        Decode a submit-retryable message payload.

        Args:
            raw: Message data of an InboxMessageDelivered event

        Returns:
            Decoded RetryableSubmission

        Raises:
            MalformedPayload: If the payload is shorter than the fixed header
                or than the header plus the declared call data length
        """
        payload = cls.to_bytes(raw)

        if len(payload) < HEADER_SIZE:
            raise MalformedPayload(
                f"Payload is {len(payload)} bytes, expected at least {HEADER_SIZE}",
                {"payload_length": len(payload)},
            )

        words = [cls.read_word(payload, i) for i in range(HEADER_WORDS)]
        call_data_length = words[8]

        if len(payload) < HEADER_SIZE + call_data_length:
            raise MalformedPayload(
                f"Declared call data length {call_data_length} exceeds the "
                f"{len(payload) - HEADER_SIZE} bytes available",
                {"payload_length": len(payload), "call_data_length": call_data_length},
            )

        # Call data is the trailing call_data_length bytes of the payload
        call_data = payload[len(payload) - call_data_length:] if call_data_length else b''

        logger.debug(f"Decoded retryable message with {call_data_length} bytes of call data")

        return RetryableSubmission(
            destination=cls.word_to_address(words[0]),
            child_call_value=words[1],
            call_value=words[2],
            max_submission_fee=words[3],
            excess_fee_refund_address=cls.word_to_address(words[4]),
            call_value_refund_address=cls.word_to_address(words[5]),
            gas_limit=words[6],
            max_fee_per_gas=words[7],
            call_data_length=call_data_length,
            call_data=call_data,
        )
