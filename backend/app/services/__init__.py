"""Business services."""

from app.services.outcome_checker import CallRecord, OutcomeChecker
from app.services.position_tracker import FailureTracker, PositionTracker
from app.services.signal_scanner import SignalScanner

__all__ = [
    "CallRecord",
    "OutcomeChecker",
    "FailureTracker",
    "PositionTracker",
    "SignalScanner",
]
