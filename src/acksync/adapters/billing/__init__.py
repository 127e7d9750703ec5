"""Public interface for the HTTP billing adapter."""

from __future__ import annotations

from .client import BillingAPIError, HttpBillingBackend, response_code_for_status
from .schema import PurchasePayload, PurchasesResponse, PurchasesUpdatedNotification
from .translator import parse_entitlement

__all__ = [
    "BillingAPIError",
    "HttpBillingBackend",
    "PurchasePayload",
    "PurchasesResponse",
    "PurchasesUpdatedNotification",
    "parse_entitlement",
    "response_code_for_status",
]
