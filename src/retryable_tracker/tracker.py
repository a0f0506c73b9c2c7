"""
Retryable tracker implementation.

This module contains the service that scans a parent-chain block range for
retryable submissions and coordinates correlation, classification and
reporting.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from web3 import Web3
from web3.types import BlockIdentifier

from .config import TrackerConfig
from .errors import DerivationInputIncomplete, MalformedPayload, RetryableTrackerError
from .event_correlator import (
    INBOX_MESSAGE_DELIVERED_TOPIC,
    MESSAGE_DELIVERED_TOPIC,
    CorrelatedPair,
    EventCorrelator,
)
from .models import (
    AccountingEvent,
    ClassificationFailure,
    ClassificationResult,
    DeliveryEvent,
    RetryableReport,
)
from .report import build_report
from .status_classifier import StatusClassifier
from .utils.chain_client import ChainClient

logger = logging.getLogger(__name__)


class RetryableTracker:
    """
    Finds retryable submissions that were not created or not auto-redeemed.

    This class focuses on coordination, delegating parsing and joining to the
    EventCorrelator and per-ticket checks to the StatusClassifier.
    """

    def __init__(
        self,
        config: TrackerConfig,
        parent_client: ChainClient | None = None,
        child_client: ChainClient | None = None,
    ):
        """
        Initialize the RetryableTracker.

        Args:
            config: Tracker configuration
            parent_client: Parent chain access (built from config when omitted)
            child_client: Child chain access (built from config when omitted)
        """
        self.config = config

        # Only clients built here are closed by close()
        self._owned_clients: list[ChainClient] = []
        if parent_client is None:
            parent_client = ChainClient(
                rpc_url=config.parent_chain.rpc_url, name=config.parent_chain.name
            )
            self._owned_clients.append(parent_client)
        if child_client is None:
            child_client = ChainClient(
                rpc_url=config.child_chain.rpc_url, name=config.child_chain.name
            )
            self._owned_clients.append(child_client)

        self.parent_client = parent_client
        self.child_client = child_client

        self.correlator = EventCorrelator()
        self.classifier = StatusClassifier(
            child_client=self.child_client,
            child_chain_id=config.child_chain.chain_id,
        )

    @classmethod
    def from_env(cls) -> "RetryableTracker":
        """
        Create a RetryableTracker instance from environment variables.

        Returns:
            Configured RetryableTracker instance

        Raises:
            ValueError: If required environment variables are missing
        """
        config = TrackerConfig.from_env()
        config.log_config()
        return cls(config)

    async def resolve_block_range(
        self,
        from_block: int | None,
        to_block: int | None,
    ) -> tuple[BlockIdentifier, BlockIdentifier]:
        """
        Turn CLI block bounds into log query bounds.

        A missing or zero lower bound means "earliest", a missing or zero
        upper bound means the current parent-chain block.
        """
        resolved_to: BlockIdentifier = (
            to_block if to_block and to_block > 0
            else await self.parent_client.current_block_number()
        )
        resolved_from: BlockIdentifier = from_block if from_block and from_block > 0 else "earliest"
        return resolved_from, resolved_to

    async def fetch_events(
        self,
        from_block: BlockIdentifier,
        to_block: BlockIdentifier,
    ) -> tuple[list[DeliveryEvent], list[AccountingEvent], list[ClassificationFailure]]:
        """
        Fetch and parse both parent-chain event streams over one range.

        Returns:
            Deliveries, accounting events, and failures for deliveries whose log could not be parsed
        """
        delivery_logs, accounting_logs = await asyncio.gather(
            self.parent_client.get_logs(
                self.config.parent_chain.inbox_address,
                INBOX_MESSAGE_DELIVERED_TOPIC,
                from_block,
                to_block,
            ),
            self.parent_client.get_logs(
                self.config.parent_chain.bridge_address,
                MESSAGE_DELIVERED_TOPIC,
                from_block,
                to_block,
            ),
        )
        logger.info(
            f"Found {len(delivery_logs)} InboxMessageDelivered and "
            f"{len(accounting_logs)} MessageDelivered events"
        )

        deliveries: list[DeliveryEvent] = []
        failures: list[ClassificationFailure] = []
        for log in delivery_logs:
            try:
                deliveries.append(self.correlator.parse_delivery_log(log))
            except MalformedPayload as e:
                logger.warning(f"Skipping unparseable InboxMessageDelivered log: {e}")
                failures.append(self._failure_from_log(log, e))

        accountings: list[AccountingEvent] = []
        for log in accounting_logs:
            try:
                accountings.append(self.correlator.parse_accounting_log(log))
            except MalformedPayload as e:
                # Its delivery will surface as a correlation mismatch
                logger.warning(f"Skipping unparseable MessageDelivered log: {e}")

        return deliveries, accountings, failures

    async def classify_all(
        self,
        pairs: Sequence[CorrelatedPair],
    ) -> tuple[list[ClassificationResult], list[ClassificationFailure]]:
        """
        Classify every pair concurrently, isolating per-pair errors.

        Raises:
            DerivationInputIncomplete: If any pair hits a derivation logic defect
        """
        semaphore = asyncio.Semaphore(self.config.lookups.max_concurrent_lookups)

        async def classify_one(pair: CorrelatedPair) -> ClassificationResult:
            async with semaphore:
                return await self.classifier.classify(pair)

        outcomes = await asyncio.gather(
            *(classify_one(pair) for pair in pairs),
            return_exceptions=True,
        )

        results: list[ClassificationResult] = []
        failures: list[ClassificationFailure] = []
        for pair, outcome in zip(pairs, outcomes):
            match outcome:
                case ClassificationResult():
                    results.append(outcome)
                case DerivationInputIncomplete():
                    logger.error(f"Hash derivation defect, aborting run: {outcome}")
                    raise outcome
                case RetryableTrackerError():
                    logger.warning(
                        f"Could not classify message {pair.delivery.sequence_number}: {outcome}"
                    )
                    failures.append(self._failure(pair.delivery, outcome))
                case Exception():
                    logger.error(
                        f"Unexpected error classifying message {pair.delivery.sequence_number}: {outcome}",
                        exc_info=outcome,
                    )
                    failures.append(self._failure(pair.delivery, outcome))
                case _:
                    raise outcome

        return results, failures

    async def find_pending_retryables(
        self,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> RetryableReport:
        """
        Scan a parent-chain block range and classify every retryable submission.

        Args:
            from_block: First parent-chain block (None or 0 for earliest)
            to_block: Last parent-chain block (None or 0 for the current block)

        Returns:
            RetryableReport with pending, redeemed and unresolved submissions
        """
        resolved_from, resolved_to = await self.resolve_block_range(from_block, to_block)
        logger.info(f"Scanning parent chain blocks {resolved_from} to {resolved_to}")

        deliveries, accountings, failures = await self.fetch_events(resolved_from, resolved_to)

        batch = self.correlator.correlate(deliveries, accountings)
        failures.extend(self._failure(delivery, error) for delivery, error in batch.mismatches)

        results, classify_failures = await self.classify_all(batch.pairs)
        failures.extend(classify_failures)

        return build_report(results, failures)

    async def close(self) -> None:
        """Close the chain connections this tracker opened."""
        for client in self._owned_clients:
            await client.close()
        logger.debug("Chain connections closed")

    def get_stats(self) -> dict[str, Any]:
        """
        Get current tracker statistics.

        Returns:
            Dictionary with correlation metrics
        """
        return self.correlator.get_metrics()

    @staticmethod
    def _failure(delivery: DeliveryEvent, error: BaseException) -> ClassificationFailure:
        message = error.message if isinstance(error, RetryableTrackerError) else str(error)
        return ClassificationFailure(
            sequence_number=delivery.sequence_number,
            parent_chain_tx_hash=delivery.transaction_hash,
            submitted_at_block=delivery.block_number,
            error_type=type(error).__name__,
            message=message,
        )

    @staticmethod
    def _failure_from_log(log: Any, error: RetryableTrackerError) -> ClassificationFailure:
        tx_hash = log.get('transactionHash', b'')
        return ClassificationFailure(
            sequence_number=-1,
            parent_chain_tx_hash=Web3.to_hex(tx_hash) if isinstance(tx_hash, bytes) else str(tx_hash),
            submitted_at_block=int(log.get('blockNumber', 0)),
            error_type=type(error).__name__,
            message=error.message,
        )
