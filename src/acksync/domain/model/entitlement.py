"""Entitlements as reported by the billing backend, plus retry bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import BillingResponseCode, ProductType, PurchaseState

if TYPE_CHECKING:
    from datetime import datetime

UNKNOWN_ORDER_ID = "UNKNOWN_ORDER"


@dataclass(frozen=True, slots=True)
class BillingResult:
    """Outcome of a single backend call."""

    response_code: BillingResponseCode
    debug_message: str = ""

    @property
    def is_ok(self) -> bool:
        return self.response_code is BillingResponseCode.OK

    @classmethod
    def ok(cls) -> BillingResult:
        return cls(BillingResponseCode.OK)

    @classmethod
    def not_ready(cls, message: str = "Billing connection is not ready") -> BillingResult:
        return cls(BillingResponseCode.SERVICE_DISCONNECTED, message)


@dataclass(frozen=True, slots=True)
class Entitlement:
    """A unit of purchased access. Read-only from the engine's point of view."""

    purchase_token: str
    state: PurchaseState
    acknowledged: bool
    order_id: str | None = None
    product_type: ProductType = ProductType.SUBS
    product_ids: tuple[str, ...] = ()
    purchase_time: datetime | None = None

    @property
    def display_order_id(self) -> str:
        return self.order_id or UNKNOWN_ORDER_ID

    @property
    def retry_key(self) -> str:
        # Orders without an id fall back to their token so they never share a slot.
        return self.order_id or self.purchase_token

    @property
    def needs_acknowledgement(self) -> bool:
        return self.state is PurchaseState.PURCHASED and not self.acknowledged


@dataclass(slots=True)
class RetryAttempt:
    """In-flight acknowledgement of one entitlement."""

    order_id: str
    purchase_token: str
    attempt: int = 0
    scheduled_at: float | None = None
