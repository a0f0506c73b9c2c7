"""
Report aggregation for the retryable tracker.

Splits classification results into pending and redeemed retryables and
renders them for the console.
"""

import logging
from collections.abc import Iterable
from operator import attrgetter

from .models import ClassificationFailure, ClassificationResult, RetryableReport

logger = logging.getLogger(__name__)

SEPARATOR = "-" * 22


def build_report(
    results: Iterable[ClassificationResult],
    failures: Iterable[ClassificationFailure] = (),
) -> RetryableReport:
    """
    Partition results into pending and redeemed, each sorted by submission block.

    Sorting is stable, so results submitted in the same block keep their
    discovery order.

    Args:
        results: Classified retryables in discovery order
        failures: Pairs that could not be classified

    Returns:
        RetryableReport
    """
    results = list(results)
    by_block = attrgetter("submitted_at_block")

    pending = sorted((r for r in results if r.status.is_pending), key=by_block)
    redeemed = sorted((r for r in results if not r.status.is_pending), key=by_block)
    failures = sorted(failures, key=by_block)

    logger.info(
        f"Report: {len(pending)} pending, {len(redeemed)} redeemed, {len(failures)} unresolved"
    )
    return RetryableReport(pending=pending, redeemed=redeemed, failures=failures)


def format_report(
    report: RetryableReport,
    chain_name: str,
    from_block: int | str,
    to_block: int | str,
) -> list[str]:
    """
    Render a report as console lines.

    Args:
        report: Aggregated report
        chain_name: Child chain name for the banner
        from_block: First scanned parent-chain block
        to_block: Last scanned parent-chain block

    Returns:
        Lines to print
    """
    lines = [
        "*" * 24,
        f"* Pending retryables in chain {chain_name}",
        f"* (Between {from_block} to {to_block})",
        "*" * 24,
    ]

    if report.pending:
        for pending in report.pending:
            lines.append(SEPARATOR)
            lines.append(f"Status: {pending.status.value}")
            lines.append(f"  Parent chain transaction: {pending.parent_chain_tx_hash}")
            lines.append(f"  Submitted at block: {pending.submitted_at_block}")
            lines.append(f"  Orbit chain create transaction: {pending.create_tx_hash}")
            if pending.execute_tx_hash:
                lines.append(f"  Orbit chain execute transaction: {pending.execute_tx_hash}")
            lines.append(SEPARATOR)
            lines.append("")
    else:
        lines.append("No pending retryables found")

    lines.append("")
    lines.append(f"Retryables successfully redeemed ({len(report.redeemed)})")
    if report.redeemed:
        lines.append("Parent chain submission transaction hash - Orbit chain creation transaction hash")
        lines.append("-" * 80)
        for redeemed in report.redeemed:
            lines.append(f"{redeemed.parent_chain_tx_hash} -- {redeemed.create_tx_hash}")

    if report.failures:
        lines.append("")
        lines.append(f"Unresolved submissions ({len(report.failures)})")
        for failure in report.failures:
            lines.append(
                f"{failure.parent_chain_tx_hash} (message {failure.sequence_number}) "
                f"-- {failure.error_type}: {failure.message}"
            )

    return lines
