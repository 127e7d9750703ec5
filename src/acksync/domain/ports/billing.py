"""Ports for talking to the external billing backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from acksync.domain.model import BillingResult, Entitlement, ProductType

type DisconnectListener = Callable[[], None]
type PurchasesUpdatedListener = Callable[[BillingResult, Sequence[Entitlement]], None]


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Entitlements of one product class together with the backend outcome."""

    result: BillingResult
    entitlements: tuple[Entitlement, ...] = ()


@runtime_checkable
class BillingBackend(Protocol):
    """Session-oriented billing service.

    Every coroutine completes exactly once with a ``BillingResult``; transport
    problems are reported as response codes instead of being raised.
    """

    def set_listeners(
        self,
        *,
        on_disconnected: DisconnectListener | None = None,
        on_purchases_updated: PurchasesUpdatedListener | None = None,
    ) -> None: ...

    async def start_connection(self) -> BillingResult: ...

    async def query_purchases(self, product_type: ProductType) -> QueryResult: ...

    async def acknowledge(self, purchase_token: str) -> BillingResult: ...

    async def end_connection(self) -> None: ...


__all__ = [
    "BillingBackend",
    "DisconnectListener",
    "PurchasesUpdatedListener",
    "QueryResult",
]
