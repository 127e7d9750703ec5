"""Domain port definitions for adapters."""

from __future__ import annotations

from .billing import BillingBackend, DisconnectListener, PurchasesUpdatedListener, QueryResult
from .scheduling import AsyncioScheduler, ScheduledHandle, Scheduler
from .verification import PurchaseVerifier, accept_unverified

__all__ = [
    "AsyncioScheduler",
    "BillingBackend",
    "DisconnectListener",
    "PurchaseVerifier",
    "PurchasesUpdatedListener",
    "QueryResult",
    "ScheduledHandle",
    "Scheduler",
    "accept_unverified",
]
