"""Issuance status reconciliation against the ledger."""

from .issuance import IssuanceStatusWatcher, WatcherRunSummary
from .job import IssuanceWatcherJob, JobHealthReport

__all__ = [
    "IssuanceStatusWatcher",
    "IssuanceWatcherJob",
    "JobHealthReport",
    "WatcherRunSummary",
]
