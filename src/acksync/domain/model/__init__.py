"""Domain model for purchase acknowledgement reconciliation."""

from __future__ import annotations

from .entitlement import UNKNOWN_ORDER_ID, BillingResult, Entitlement, RetryAttempt
from .enums import BillingResponseCode, ConnectionState, ProductType, PurchaseState
from .events import (
    AcknowledgementAbandoned,
    AcknowledgementSkipped,
    PurchaseAcknowledged,
    ReconciliationEvent,
    RetryScheduled,
)

__all__ = [
    "UNKNOWN_ORDER_ID",
    "AcknowledgementAbandoned",
    "AcknowledgementSkipped",
    "BillingResponseCode",
    "BillingResult",
    "ConnectionState",
    "Entitlement",
    "ProductType",
    "PurchaseAcknowledged",
    "PurchaseState",
    "ReconciliationEvent",
    "RetryAttempt",
    "RetryScheduled",
]
