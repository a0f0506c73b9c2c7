"""Unit tests for report aggregation and formatting."""

from retryable_tracker.models import ClassificationFailure, ClassificationResult, RetryableStatus
from retryable_tracker.report import build_report, format_report


def make_result(block: int, status: RetryableStatus, tag: str = "a") -> ClassificationResult:
    return ClassificationResult(
        parent_chain_tx_hash=f"0x{tag * 2}{block:062x}",
        submitted_at_block=block,
        create_tx_hash=f"0xc{block:063x}",
        status=status,
    )


class TestBuildReport:
    """Tests for partitioning and ordering."""

    def test_partitions_by_status(self):
        results = [
            make_result(1, RetryableStatus.NOT_CREATED),
            make_result(2, RetryableStatus.REDEEMED),
            make_result(3, RetryableStatus.AUTOREDEEM_FAILED),
        ]

        report = build_report(results)

        assert [r.submitted_at_block for r in report.pending] == [1, 3]
        assert [r.submitted_at_block for r in report.redeemed] == [2]
        assert report.failures == []

    def test_each_partition_sorted_ascending(self):
        results = [
            make_result(500, RetryableStatus.NOT_CREATED),
            make_result(500, RetryableStatus.REDEEMED),
            make_result(100, RetryableStatus.CREATE_FAILED),
            make_result(100, RetryableStatus.REDEEMED),
            make_result(300, RetryableStatus.NOT_AUTOREDEEMED),
            make_result(300, RetryableStatus.REDEEMED),
        ]

        report = build_report(results)

        assert [r.submitted_at_block for r in report.pending] == [100, 300, 500]
        assert [r.submitted_at_block for r in report.redeemed] == [100, 300, 500]

    def test_ties_keep_discovery_order(self):
        first = make_result(7, RetryableStatus.NOT_CREATED, tag="a")
        second = make_result(7, RetryableStatus.CREATE_FAILED, tag="b")
        third = make_result(7, RetryableStatus.NOT_AUTOREDEEMED, tag="c")

        report = build_report([first, second, third])

        assert report.pending == [first, second, third]

    def test_failures_are_kept(self):
        failure = ClassificationFailure(
            sequence_number=4,
            parent_chain_tx_hash="0x" + "ff" * 32,
            submitted_at_block=10,
            error_type="LookupFailure",
            message="boom",
        )

        report = build_report([], [failure])

        assert report.failures == [failure]
        assert report.to_dict()["failures"][0]["error_type"] == "LookupFailure"

    def test_empty(self):
        report = build_report([])

        assert report.pending == []
        assert report.redeemed == []


class TestFormatReport:
    """Tests for console rendering."""

    def test_no_pending(self):
        lines = format_report(build_report([]), "Test Orbit", "earliest", 1000)

        assert "* Pending retryables in chain Test Orbit" in lines
        assert "* (Between earliest to 1000)" in lines
        assert "No pending retryables found" in lines
        assert "Retryables successfully redeemed (0)" in lines

    def test_pending_and_redeemed_sections(self):
        pending = make_result(1, RetryableStatus.NOT_AUTOREDEEMED)
        redeemed = make_result(2, RetryableStatus.REDEEMED)

        lines = format_report(build_report([pending, redeemed]), "Test Orbit", 1, 2)

        assert "Status: NOT_AUTOREDEEMED" in lines
        assert f"  Parent chain transaction: {pending.parent_chain_tx_hash}" in lines
        assert "Retryables successfully redeemed (1)" in lines
        assert f"{redeemed.parent_chain_tx_hash} -- {redeemed.create_tx_hash}" in lines

    def test_execute_hash_shown_when_present(self):
        result = ClassificationResult(
            parent_chain_tx_hash="0x" + "01" * 32,
            submitted_at_block=1,
            create_tx_hash="0x" + "02" * 32,
            status=RetryableStatus.AUTOREDEEM_FAILED,
            execute_tx_hash="0x" + "03" * 32,
        )

        lines = format_report(build_report([result]), "Test Orbit", 1, 2)

        assert f"  Orbit chain execute transaction: {'0x' + '03' * 32}" in lines
        assert result.to_dict()["execute_tx_hash"] == "0x" + "03" * 32
