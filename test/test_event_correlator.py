#!/usr/bin/env python3
"""Unit tests for the EventCorrelator module."""

import logging

import pytest
from hexbytes import HexBytes

from retryable_tracker.errors import CorrelationMismatch, MalformedPayload
from retryable_tracker.event_correlator import (
    EventCorrelator,
    normalize_hash,
    parse_event_topic_as_int,
)
from retryable_tracker.models import AccountingEvent, DeliveryEvent

from conftest import INBOX, SENDER


@pytest.fixture
def correlator():
    """Create an EventCorrelator instance for testing."""
    return EventCorrelator()


def make_delivery(sequence_number: int, block_number: int = 100) -> DeliveryEvent:
    return DeliveryEvent(
        sequence_number=sequence_number,
        data=b'',
        transaction_hash="0x" + f"{sequence_number:064x}",
        block_number=block_number,
    )


def make_accounting(sequence_number: int, kind: int = 9) -> AccountingEvent:
    return AccountingEvent(
        sequence_number=sequence_number,
        kind=kind,
        sender=SENDER,
        base_fee=1,
        timestamp=2,
    )


class TestLogParsing:
    """Tests for raw log decoding."""

    def test_parse_delivery_log(self, correlator, delivery_log):
        log = delivery_log(7, b'\x01\x02\x03', block_number=555, tx_hash="0x" + "ab" * 32)

        event = correlator.parse_delivery_log(log)

        assert event.sequence_number == 7
        assert event.data == b'\x01\x02\x03'
        assert event.block_number == 555
        assert event.transaction_hash == "0x" + "ab" * 32

    def test_parse_delivery_log_with_hex_strings(self, correlator, delivery_log):
        """Test logs whose fields arrive as hex strings rather than bytes."""
        raw = delivery_log(3, b'\xff')
        log = {
            'topics': ['0x' + bytes(t).hex() for t in raw['topics']],
            'data': '0x' + bytes(raw['data']).hex(),
            'transactionHash': '0x' + bytes(raw['transactionHash']).hex(),
            'blockNumber': raw['blockNumber'],
        }

        event = correlator.parse_delivery_log(log)

        assert event.sequence_number == 3
        assert event.data == b'\xff'

    def test_parse_accounting_log(self, correlator, accounting_log):
        log = accounting_log(7, kind=9, base_fee=1234, timestamp=99)

        event = correlator.parse_accounting_log(log)

        assert event.sequence_number == 7
        assert event.kind == 9
        assert event.sender == SENDER
        assert event.base_fee == 1234
        assert event.timestamp == 99
        assert event.inbox == INBOX
        assert event.before_inbox_acc == "0x" + "22" * 32
        assert event.message_data_hash == "0x" + "11" * 32

    def test_delivery_log_missing_topic_raises(self, correlator, delivery_log):
        log = delivery_log(1, b'')
        log['topics'] = log['topics'][:1]

        with pytest.raises(MalformedPayload, match="topics"):
            correlator.parse_delivery_log(log)

    def test_accounting_log_bad_data_raises(self, correlator, accounting_log):
        log = accounting_log(1)
        log['data'] = HexBytes(b'\x00' * 10)

        with pytest.raises(MalformedPayload, match="Cannot decode"):
            correlator.parse_accounting_log(log)

    def test_topic_parsing_formats(self):
        assert parse_event_topic_as_int(b'\x00' * 31 + b'\x2a') == 42
        assert parse_event_topic_as_int("0x" + "00" * 31 + "2a") == 42
        assert parse_event_topic_as_int("2a") == 42

    def test_normalize_hash(self):
        assert normalize_hash(b'\xab' * 32) == "0x" + "ab" * 32
        assert normalize_hash("AB" * 32) == "0x" + "ab" * 32


class TestCorrelation:
    """Tests for joining the two event streams."""

    def test_pairs_by_sequence_number_not_position(self, correlator):
        deliveries = [make_delivery(1), make_delivery(2), make_delivery(3)]
        accountings = [make_accounting(3), make_accounting(1), make_accounting(2)]

        batch = correlator.correlate(deliveries, accountings)

        assert [p.delivery.sequence_number for p in batch.pairs] == [1, 2, 3]
        assert all(p.delivery.sequence_number == p.accounting.sequence_number for p in batch.pairs)
        assert batch.mismatches == []

    def test_non_retryable_kinds_are_excluded(self, correlator):
        deliveries = [make_delivery(1), make_delivery(2), make_delivery(3)]
        accountings = [make_accounting(1, kind=3), make_accounting(2), make_accounting(3, kind=12)]

        batch = correlator.correlate(deliveries, accountings)

        assert [p.delivery.sequence_number for p in batch.pairs] == [2]
        assert batch.mismatches == []
        assert correlator.get_metrics()["pairs_filtered"] == 2

    def test_missing_accounting_event_is_mismatch(self, correlator):
        batch = correlator.correlate([make_delivery(1), make_delivery(2)], [make_accounting(2)])

        assert [p.delivery.sequence_number for p in batch.pairs] == [2]
        assert len(batch.mismatches) == 1
        delivery, error = batch.mismatches[0]
        assert delivery.sequence_number == 1
        assert isinstance(error, CorrelationMismatch)
        assert error.context["matches"] == 0

    def test_duplicate_accounting_events_are_mismatch(self, correlator):
        batch = correlator.correlate(
            [make_delivery(5), make_delivery(6)],
            [make_accounting(5), make_accounting(5), make_accounting(6)],
        )

        assert [p.delivery.sequence_number for p in batch.pairs] == [6]
        assert len(batch.mismatches) == 1
        assert batch.mismatches[0][1].context["matches"] == 2

    def test_duplicate_non_retryable_is_still_mismatch(self, correlator):
        """Multiplicity is checked before the kind filter."""
        batch = correlator.correlate(
            [make_delivery(5)],
            [make_accounting(5, kind=3), make_accounting(5, kind=3)],
        )

        assert batch.pairs == []
        assert len(batch.mismatches) == 1

    def test_empty_inputs(self, correlator):
        batch = correlator.correlate([], [])

        assert batch.pairs == []
        assert batch.mismatches == []

    def test_summary_log_uses_batch_counts(self, correlator, caplog):
        """Test that a second batch logs its own counts while metrics accumulate."""
        correlator.correlate(
            [make_delivery(1), make_delivery(2)],
            [make_accounting(1, kind=3), make_accounting(2, kind=3)],
        )
        caplog.clear()

        with caplog.at_level(logging.INFO, logger="retryable_tracker.event_correlator"):
            correlator.correlate([make_delivery(3)], [make_accounting(3)])

        assert "Correlated 1 retryable submissions (0 other kinds skipped, 0 mismatched)" in caplog.text
        assert correlator.get_metrics()["pairs_filtered"] == 2
        assert correlator.get_metrics()["pairs_correlated"] == 1

    def test_metrics(self, correlator):
        correlator.correlate(
            [make_delivery(1), make_delivery(2), make_delivery(3)],
            [make_accounting(1), make_accounting(2, kind=0)],
        )

        assert correlator.get_metrics() == {
            "pairs_correlated": 1,
            "pairs_filtered": 1,
            "pairs_mismatched": 1,
        }
