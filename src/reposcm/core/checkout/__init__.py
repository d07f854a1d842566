"""
Checkout, polling and build-record persistence.

Key Types:
    CheckoutService: checkout() and poll() for one job
    SyncOrchestrator: The init/sync/recover/retry state machine
    RevisionStore: builds.json persistence
    PollResult / PollChange: Polling decision
    CheckoutReport: Result of a successful checkout
"""

from .models import (
    BuildHistory,
    BuildRecord,
    BuildResult,
    CheckoutReport,
    PollChange,
    PollResult,
)
from .orchestrator import SyncOptions, SyncOrchestrator, SyncOutcome, SyncState
from .service import CheckoutService
from .store import RevisionStore

__all__ = [
    "BuildHistory",
    "BuildRecord",
    "BuildResult",
    "CheckoutReport",
    "CheckoutService",
    "PollChange",
    "PollResult",
    "RevisionStore",
    "SyncOptions",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncState",
]
