#!/usr/bin/env python3
"""Event correlation for the retryable tracker.

This module parses the two parent-chain event streams (InboxMessageDelivered
from the Inbox and MessageDelivered from the Bridge) and joins them by
inbox sequence number, keeping only submit-retryable messages.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode
from web3 import Web3

from .errors import CorrelationMismatch, MalformedPayload
from .models import AccountingEvent, DeliveryEvent
from .utils.blockchain_encoder import BlockchainEncoder

# Get logger for this module
logger = logging.getLogger(__name__)

SUBMIT_RETRYABLE_KIND = 9

INBOX_MESSAGE_DELIVERED_TOPIC: str = Web3.to_hex(
    Web3.keccak(text="InboxMessageDelivered(uint256,bytes)")
)
MESSAGE_DELIVERED_TOPIC: str = Web3.to_hex(
    Web3.keccak(text="MessageDelivered(uint256,bytes32,address,uint8,address,bytes32,uint256,uint64)")
)

MESSAGE_DELIVERED_DATA_TYPES = ['address', 'uint8', 'address', 'bytes32', 'uint256', 'uint64']


def parse_event_topic_as_int(topic: Any) -> int:
    """
    Parse an event topic (bytes or hex string) as an integer.

    Ethereum event topics can come in different formats depending on the provider:
    - As bytes objects: b'\\x00\\x00...\\x01'
    - As hex strings: "0x0000000000000000000000000000000000000000000000000000000000000001"
    """
    if isinstance(topic, bytes):
        return int.from_bytes(topic, byteorder='big')
    elif isinstance(topic, str):
        hex_str = topic[2:] if topic.startswith('0x') else topic
        return int(hex_str, 16) if hex_str else 0
    else:
        raise MalformedPayload(f"Unexpected topic type: {type(topic).__name__}")


def normalize_hash(value: Any) -> str:
    """0x-prefixed lowercase hex of a hash given as bytes or string."""
    match value:
        case bytes() as raw:
            return Web3.to_hex(raw)
        case str() as text:
            text = text.lower()
            return text if text.startswith('0x') else '0x' + text
        case _:
            raise MalformedPayload(f"Unexpected hash type: {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class CorrelatedPair:
    """A delivery joined with its Bridge accounting event."""
    delivery: DeliveryEvent
    accounting: AccountingEvent


@dataclass(slots=True)
class CorrelationBatch:
    """Result of correlating one block range.

    Attributes:
        pairs: Submit-retryable pairs in delivery order
        mismatches: Deliveries whose sequence number matched zero or several Bridge events
    """
    pairs: list[CorrelatedPair] = field(default_factory=list)
    mismatches: list[tuple[DeliveryEvent, CorrelationMismatch]] = field(default_factory=list)


class EventCorrelator:
    """Parses and joins parent-chain delivery and accounting events.

    This class is responsible for:
    - Decoding raw InboxMessageDelivered and MessageDelivered logs
    - Indexing accounting events by sequence number once per batch
    - Reporting deliveries without exactly one accounting match
    - Dropping messages that are not submit-retryable
    """

    def __init__(self, retryable_kind: int = SUBMIT_RETRYABLE_KIND) -> None:
        """
        Initialize the EventCorrelator.

        Args:
            retryable_kind: Message kind that denotes a retryable submission
        """
        self.retryable_kind = retryable_kind

        # Metrics tracking, cumulative over every correlated batch
        self.pairs_correlated = 0
        self.pairs_filtered = 0
        self.pairs_mismatched = 0

    @staticmethod
    def parse_delivery_log(log: Mapping[str, Any]) -> DeliveryEvent:
        """
        Decode an InboxMessageDelivered log.

        Args:
            log: Raw log with topics, data, transactionHash and blockNumber

        Returns:
            DeliveryEvent

        Raises:
            MalformedPayload: If the log does not have the expected shape
        """
        topics = log.get('topics', [])
        if len(topics) < 2:
            raise MalformedPayload(
                f"InboxMessageDelivered log has {len(topics)} topics, expected 2"
            )

        try:
            (data,) = decode(['bytes'], BlockchainEncoder.to_bytes_safe(log.get('data', b'')))
        except Exception as e:
            raise MalformedPayload(f"Cannot decode InboxMessageDelivered data: {e}") from e

        return DeliveryEvent(
            sequence_number=parse_event_topic_as_int(topics[1]),
            data=bytes(data),
            transaction_hash=normalize_hash(log.get('transactionHash', b'')),
            block_number=int(log.get('blockNumber', 0)),
        )

    @staticmethod
    def parse_accounting_log(log: Mapping[str, Any]) -> AccountingEvent:
        """
        Decode a Bridge MessageDelivered log.

        Args:
            log: Raw log with topics and data

        Returns:
            AccountingEvent

        Raises:
            MalformedPayload: If the log does not have the expected shape
        """
        topics = log.get('topics', [])
        if len(topics) < 3:
            raise MalformedPayload(
                f"MessageDelivered log has {len(topics)} topics, expected 3"
            )

        try:
            inbox, kind, sender, message_data_hash, base_fee, timestamp = decode(
                MESSAGE_DELIVERED_DATA_TYPES,
                BlockchainEncoder.to_bytes_safe(log.get('data', b'')),
            )
        except Exception as e:
            raise MalformedPayload(f"Cannot decode MessageDelivered data: {e}") from e

        return AccountingEvent(
            sequence_number=parse_event_topic_as_int(topics[1]),
            kind=int(kind),
            sender=Web3.to_checksum_address(sender),
            base_fee=int(base_fee),
            timestamp=int(timestamp),
            before_inbox_acc=normalize_hash(topics[2]),
            inbox=Web3.to_checksum_address(inbox),
            message_data_hash=Web3.to_hex(message_data_hash),
        )

    @staticmethod
    def index_by_sequence_number(
        accountings: Iterable[AccountingEvent],
    ) -> dict[int, list[AccountingEvent]]:
        """Group accounting events by sequence number, keeping duplicates."""
        index: dict[int, list[AccountingEvent]] = {}
        for event in accountings:
            index.setdefault(event.sequence_number, []).append(event)
        return index

    def correlate(
        self,
        deliveries: Iterable[DeliveryEvent],
        accountings: Iterable[AccountingEvent],
    ) -> CorrelationBatch:
        """
        Join deliveries with accounting events and keep submit-retryable pairs.

        Args:
            deliveries: Parsed InboxMessageDelivered events
            accountings: Parsed MessageDelivered events over the same range

        Returns:
            CorrelationBatch with pairs and per-delivery mismatches
        """
        index = self.index_by_sequence_number(accountings)
        batch = CorrelationBatch()
        filtered = 0

        for delivery in deliveries:
            matches = index.get(delivery.sequence_number, [])

            if len(matches) != 1:
                self.pairs_mismatched += 1
                error = CorrelationMismatch(
                    f"Expected exactly one MessageDelivered event for message "
                    f"{delivery.sequence_number}, found {len(matches)}",
                    {
                        "sequence_number": delivery.sequence_number,
                        "matches": len(matches),
                        "parent_chain_tx_hash": delivery.transaction_hash,
                    },
                )
                logger.warning(str(error))
                batch.mismatches.append((delivery, error))
                continue

            accounting = matches[0]
            if accounting.kind != self.retryable_kind:
                self.pairs_filtered += 1
                filtered += 1
                logger.debug(
                    f"Skipping message {delivery.sequence_number} of kind {accounting.kind}"
                )
                continue

            self.pairs_correlated += 1
            batch.pairs.append(CorrelatedPair(delivery=delivery, accounting=accounting))

        logger.info(
            f"Correlated {len(batch.pairs)} retryable submissions "
            f"({filtered} other kinds skipped, {len(batch.mismatches)} mismatched)"
        )
        return batch

    def get_metrics(self) -> dict[str, int]:
        """
        Get current correlation metrics.

        Returns:
            Dictionary of metric names to values
        """
        return {
            "pairs_correlated": self.pairs_correlated,
            "pairs_filtered": self.pairs_filtered,
            "pairs_mismatched": self.pairs_mismatched,
        }
