"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class PurchaseState(StrEnum):
    PURCHASED = "purchased"
    PENDING = "pending"
    CANCELED = "canceled"


class ProductType(StrEnum):
    SUBS = "subs"
    INAPP = "inapp"


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    DISCONNECTED_UNEXPECTEDLY = "disconnected_unexpectedly"


class BillingResponseCode(IntEnum):
    """Response codes reported by the billing backend (Play Billing numbering)."""

    FEATURE_NOT_SUPPORTED = -2
    SERVICE_DISCONNECTED = -1
    OK = 0
    USER_CANCELED = 1
    SERVICE_UNAVAILABLE = 2
    BILLING_UNAVAILABLE = 3
    ITEM_UNAVAILABLE = 4
    DEVELOPER_ERROR = 5
    ERROR = 6
    ITEM_ALREADY_OWNED = 7
    ITEM_NOT_OWNED = 8
    NETWORK_ERROR = 12

    @classmethod
    def coerce(cls, value: int) -> BillingResponseCode:
        try:
            return cls(value)
        except ValueError:
            return cls.ERROR
