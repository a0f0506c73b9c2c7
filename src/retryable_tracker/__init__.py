"""
Retryable Tracker package.

Finds retryable tickets submitted to an Orbit chain that were never created
or never auto-redeemed.
"""

from .config import TrackerConfig
from .event_correlator import EventCorrelator
from .models import ClassificationResult, RetryableReport, RetryableStatus
from .report import build_report
from .status_classifier import StatusClassifier
from .tracker import RetryableTracker

__all__ = [
    "TrackerConfig",
    "RetryableTracker",
    "EventCorrelator",
    "StatusClassifier",
    "ClassificationResult",
    "RetryableReport",
    "RetryableStatus",
    "build_report",
]
__version__ = "0.1.0"
