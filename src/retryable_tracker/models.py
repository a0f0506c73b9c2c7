#!/usr/bin/env python3
"""Data models for the retryable tracker.

This module provides immutable data classes for the parent-chain events,
the decoded retryable submission, and the per-ticket classification results
that make up a report.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class RetryableStatus(str, Enum):
    """Terminal outcome of classifying one retryable submission."""
    NOT_CREATED = "NOT_CREATED"
    CREATE_FAILED = "CREATE_FAILED"
    NOT_AUTOREDEEMED = "NOT_AUTOREDEEMED"
    AUTOREDEEM_CREATE_FAILED = "AUTOREDEEM_CREATE_FAILED"
    AUTOREDEEM_FAILED = "AUTOREDEEM_FAILED"
    REDEEMED = "REDEEMED"

    @property
    def is_pending(self) -> bool:
        """True for every status except REDEEMED."""
        return self is not RetryableStatus.REDEEMED


@dataclass(frozen=True, slots=True)
class RetryableSubmission:
    """Retryable submission decoded from an inbox message payload.

    Attributes:
        destination: Checksummed address the child-chain call goes to
        child_call_value: Value forwarded to the destination on the child chain
        call_value: Value deposited from the parent chain
        max_submission_fee: Maximum fee paid for creating the ticket
        excess_fee_refund_address: Receives leftover fees
        call_value_refund_address: Receives the call value if the ticket expires or is cancelled
        gas_limit: Gas limit for the auto-redeem
        max_fee_per_gas: Gas price bid for the auto-redeem
        call_data_length: Declared length of the call data
        call_data: Call data bytes
    """
    destination: str
    child_call_value: int
    call_value: int
    max_submission_fee: int
    excess_fee_refund_address: str
    call_value_refund_address: str
    gas_limit: int
    max_fee_per_gas: int
    call_data_length: int
    call_data: bytes


@dataclass(frozen=True, slots=True)
class DeliveryEvent:
    """An InboxMessageDelivered event emitted by the parent-chain Inbox."""
    sequence_number: int
    data: bytes
    transaction_hash: str
    block_number: int

    def __str__(self) -> str:
        return (
            f"DeliveryEvent(seq={self.sequence_number}, "
            f"tx={self.transaction_hash[:10]}..., "
            f"block={self.block_number})"
        )


@dataclass(frozen=True, slots=True)
class AccountingEvent:
    """A MessageDelivered event emitted by the parent-chain Bridge.

    Attributes:
        sequence_number: Inbox message index (join key with DeliveryEvent)
        kind: Message kind, 9 for submit-retryable
        sender: Aliased sender of the message
        base_fee: Parent-chain base fee at submission time
        timestamp: Parent-chain timestamp at submission time
        before_inbox_acc: Inbox accumulator before this message
        inbox: Inbox contract that delivered the message
        message_data_hash: Keccak of the message data
    """
    sequence_number: int
    kind: int
    sender: str
    base_fee: int
    timestamp: int
    before_inbox_acc: str = ""
    inbox: str = ""
    message_data_hash: str = ""


@dataclass(frozen=True, slots=True)
class DerivedTransactionRecord:
    """Every input the submit-retryable hash derivation consumes.

    Never persisted; built right before hashing.
    """
    child_chain_id: int
    sender: str
    sequence_number: int
    base_fee: int
    destination: str
    child_call_value: int
    call_value: int
    max_submission_fee: int
    excess_fee_refund_address: str
    call_value_refund_address: str
    gas_limit: int
    max_fee_per_gas: int
    call_data: bytes

    @classmethod
    def from_submission(
        cls,
        child_chain_id: int,
        accounting: AccountingEvent,
        submission: RetryableSubmission,
    ) -> "DerivedTransactionRecord":
        """Join the Bridge event fields with the decoded message fields."""
        return cls(
            child_chain_id=child_chain_id,
            sender=accounting.sender,
            sequence_number=accounting.sequence_number,
            base_fee=accounting.base_fee,
            destination=submission.destination,
            child_call_value=submission.child_call_value,
            call_value=submission.call_value,
            max_submission_fee=submission.max_submission_fee,
            excess_fee_refund_address=submission.excess_fee_refund_address,
            call_value_refund_address=submission.call_value_refund_address,
            gas_limit=submission.gas_limit,
            max_fee_per_gas=submission.max_fee_per_gas,
            call_data=submission.call_data,
        )

    def missing_fields(self) -> list[str]:
        """Names of fields that are None."""
        return [f.name for f in fields(self) if getattr(self, f.name) is None]


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Outcome of classifying one retryable submission.

    Attributes:
        parent_chain_tx_hash: Parent-chain transaction that submitted the retryable
        submitted_at_block: Parent-chain block of that transaction
        create_tx_hash: Derived child-chain hash of the ticket creation
        status: Terminal status
        execute_tx_hash: Child-chain auto-redeem hash, when a RedeemScheduled log exists
    """
    parent_chain_tx_hash: str
    submitted_at_block: int
    create_tx_hash: str
    status: RetryableStatus
    execute_tx_hash: str | None = None

    def __str__(self) -> str:
        return (
            f"ClassificationResult(status={self.status.value}, "
            f"parent_tx={self.parent_chain_tx_hash[:10]}..., "
            f"block={self.submitted_at_block})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "parent_chain_tx_hash": self.parent_chain_tx_hash,
            "submitted_at_block": self.submitted_at_block,
            "create_tx_hash": self.create_tx_hash,
            "status": self.status.value,
        }
        if self.execute_tx_hash is not None:
            result["execute_tx_hash"] = self.execute_tx_hash
        return result


@dataclass(frozen=True, slots=True)
class ClassificationFailure:
    """A delivery that could not be classified."""
    sequence_number: int
    parent_chain_tx_hash: str
    submitted_at_block: int
    error_type: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "sequence_number": self.sequence_number,
            "parent_chain_tx_hash": self.parent_chain_tx_hash,
            "submitted_at_block": self.submitted_at_block,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class RetryableReport:
    """Pending and redeemed retryables found in one block range."""
    pending: list[ClassificationResult] = field(default_factory=list)
    redeemed: list[ClassificationResult] = field(default_factory=list)
    failures: list[ClassificationFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "pending": [r.to_dict() for r in self.pending],
            "redeemed": [r.to_dict() for r in self.redeemed],
            "failures": [f.to_dict() for f in self.failures],
        }
