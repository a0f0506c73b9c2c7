"""
Status classification of retryable submissions.

For each correlated pair the classifier derives the ticket creation hash,
then walks the child chain receipts:

    create receipt -> RedeemScheduled log -> auto-redeem receipt

and stops at the first step that does not check out.
"""

import logging
from typing import Any, Protocol

from web3 import Web3
from web3.types import TxReceipt

from .errors import MalformedPayload
from .event_correlator import CorrelatedPair, normalize_hash
from .models import ClassificationResult, DerivedTransactionRecord, RetryableStatus
from .utils.blockchain_encoder import BlockchainEncoder
from .utils.message_codec import MessageCodec

logger = logging.getLogger(__name__)

REDEEM_SCHEDULED_TOPIC: bytes = bytes(
    Web3.keccak(text="RedeemScheduled(bytes32,bytes32,uint64,uint64,address,uint256,uint256)")
)
# RedeemScheduled(ticketId indexed, retryTxHash indexed, sequenceNum indexed, ...)
RETRY_TX_HASH_TOPIC_INDEX = 2


class ReceiptSource(Protocol):
    """Anything that can look up receipts on the child chain."""

    async def get_receipt(self, tx_hash: str) -> TxReceipt | None: ...


class StatusClassifier:
    """Classifies correlated retryable submissions against the child chain."""

    def __init__(self, child_client: ReceiptSource, child_chain_id: int) -> None:
        """
        Initialize the StatusClassifier.

        Args:
            child_client: Receipt lookups on the child chain
            child_chain_id: Chain id used in the hash derivation
        """
        self.child_client = child_client
        self.child_chain_id = child_chain_id

    def derive_create_hash(self, pair: CorrelatedPair) -> str:
        """
        Decode the delivery payload and derive the ticket creation hash.

        Raises:
            MalformedPayload: If the payload cannot be decoded
            DerivationInputIncomplete: If a derivation input is missing
        """
        submission = MessageCodec.decode(pair.delivery.data)
        record = DerivedTransactionRecord.from_submission(
            self.child_chain_id, pair.accounting, submission
        )
        return BlockchainEncoder.submit_retryable_tx_hash(record)

    @staticmethod
    def receipt_succeeded(receipt: TxReceipt) -> bool:
        """True if the receipt status is 1."""
        return int(receipt.get('status', 0)) == 1

    @staticmethod
    def find_redeem_scheduled_log(receipt: TxReceipt) -> Any | None:
        """
        Find the RedeemScheduled log in a receipt by its signature topic.

        Args:
            receipt: Ticket creation receipt

        Returns:
            The first matching log, or None
        """
        for log in receipt.get('logs', []):
            topics = log.get('topics', [])
            if topics and BlockchainEncoder.to_bytes_safe(topics[0]) == REDEEM_SCHEDULED_TOPIC:
                return log
        return None

    async def classify(self, pair: CorrelatedPair) -> ClassificationResult:
        """
        Classify one retryable submission.

        Args:
            pair: Delivery and accounting events of the submission

        Returns:
            ClassificationResult with the first terminal status reached

        Raises:
            MalformedPayload: If the message cannot be decoded
            LookupFailure: If a receipt lookup fails
        """
        delivery = pair.delivery
        create_tx_hash = self.derive_create_hash(pair)

        def result(status: RetryableStatus, execute_tx_hash: str | None = None) -> ClassificationResult:
            logger.debug(f"Message {delivery.sequence_number}: {status.value}")
            return ClassificationResult(
                parent_chain_tx_hash=delivery.transaction_hash,
                submitted_at_block=delivery.block_number,
                create_tx_hash=create_tx_hash,
                status=status,
                execute_tx_hash=execute_tx_hash,
            )

        create_receipt = await self.child_client.get_receipt(create_tx_hash)
        if create_receipt is None:
            return result(RetryableStatus.NOT_CREATED)

        if not self.receipt_succeeded(create_receipt):
            return result(RetryableStatus.CREATE_FAILED)

        redeem_log = self.find_redeem_scheduled_log(create_receipt)
        if redeem_log is None:
            return result(RetryableStatus.NOT_AUTOREDEEMED)

        redeem_topics = redeem_log.get('topics', [])
        if len(redeem_topics) <= RETRY_TX_HASH_TOPIC_INDEX:
            raise MalformedPayload(
                f"RedeemScheduled log in {create_tx_hash} has {len(redeem_topics)} topics",
                {"create_tx_hash": create_tx_hash},
            )
        execute_tx_hash = normalize_hash(redeem_topics[RETRY_TX_HASH_TOPIC_INDEX])

        execute_receipt = await self.child_client.get_receipt(execute_tx_hash)
        if execute_receipt is None:
            return result(RetryableStatus.AUTOREDEEM_CREATE_FAILED, execute_tx_hash)

        if not self.receipt_succeeded(execute_receipt):
            return result(RetryableStatus.AUTOREDEEM_FAILED, execute_tx_hash)

        return result(RetryableStatus.REDEEMED, execute_tx_hash)
