"""Events emitted while acknowledging entitlements."""

from __future__ import annotations

from dataclasses import dataclass

from .entitlement import BillingResult  # noqa: TC001


@dataclass(frozen=True, slots=True)
class PurchaseAcknowledged:
    order_id: str
    attempt: int


@dataclass(frozen=True, slots=True)
class RetryScheduled:
    order_id: str
    attempt: int
    delay_seconds: float
    result: BillingResult


@dataclass(frozen=True, slots=True)
class AcknowledgementAbandoned:
    order_id: str
    attempt: int
    result: BillingResult


@dataclass(frozen=True, slots=True)
class AcknowledgementSkipped:
    """An acknowledgement was not issued because the connection was not ready."""

    order_id: str
    result: BillingResult


type ReconciliationEvent = (
    PurchaseAcknowledged | RetryScheduled | AcknowledgementAbandoned | AcknowledgementSkipped
)
