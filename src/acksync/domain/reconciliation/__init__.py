"""Purchase acknowledgement reconciliation.

Layered flow for one cycle:
1) connect to the billing backend (``ConnectionManager``)
2) list the current entitlements (``PurchaseQuery``)
3) partition them (``partition_entitlements``)
4) acknowledge the unacknowledged ones with retries (``AcknowledgementRetrier``)
"""

from __future__ import annotations

from .connection import ConnectionManager
from .engine import BillingReconciler, CycleOutcome, CycleReport
from .filter import ReconciliationPlan, partition_entitlements
from .query import PurchaseQuery
from .retrier import AcknowledgementRetrier, EventSink

__all__ = [
    "AcknowledgementRetrier",
    "BillingReconciler",
    "ConnectionManager",
    "CycleOutcome",
    "CycleReport",
    "EventSink",
    "PurchaseQuery",
    "ReconciliationPlan",
    "partition_entitlements",
]
