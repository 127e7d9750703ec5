"""Reusable fakes for billing backend and scheduling tests."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from acksync.domain.model import (
    BillingResponseCode,
    BillingResult,
    Entitlement,
    ProductType,
    PurchaseState,
)
from acksync.domain.ports import QueryResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from acksync.domain.ports import DisconnectListener, PurchasesUpdatedListener


def make_entitlement(
    order_id: str | None = "ORD-1",
    *,
    state: PurchaseState = PurchaseState.PURCHASED,
    acknowledged: bool = False,
    token: str | None = None,
    product_type: ProductType = ProductType.SUBS,
) -> Entitlement:
    return Entitlement(
        order_id=order_id,
        purchase_token=token or f"token-{order_id}",
        state=state,
        acknowledged=acknowledged,
        product_type=product_type,
    )


def failure(
    code: BillingResponseCode = BillingResponseCode.SERVICE_UNAVAILABLE,
    message: str = "try again",
) -> BillingResult:
    return BillingResult(code, message)


class FakeBillingBackend:
    """In-memory billing backend with scripted outcomes.

    ``ack_results`` is consumed per call; once exhausted every further
    acknowledgement returns ``default_ack``.
    """

    def __init__(
        self,
        *,
        entitlements: Iterable[Entitlement] = (),
        connect_result: BillingResult | None = None,
        query_result: BillingResult | None = None,
        ack_results: Iterable[BillingResult] = (),
        default_ack: BillingResult | None = None,
    ) -> None:
        self.entitlements = list(entitlements)
        self.connect_result = connect_result or BillingResult.ok()
        self.query_result = query_result or BillingResult.ok()
        self.ack_results: deque[BillingResult] = deque(ack_results)
        self.default_ack = default_ack or BillingResult.ok()
        self.connect_calls = 0
        self.query_calls: list[ProductType] = []
        self.ack_calls: list[str] = []
        self.end_calls = 0
        self.on_disconnected: DisconnectListener | None = None
        self.on_purchases_updated: PurchasesUpdatedListener | None = None

    def set_listeners(
        self,
        *,
        on_disconnected: DisconnectListener | None = None,
        on_purchases_updated: PurchasesUpdatedListener | None = None,
    ) -> None:
        if on_disconnected is not None:
            self.on_disconnected = on_disconnected
        if on_purchases_updated is not None:
            self.on_purchases_updated = on_purchases_updated

    async def start_connection(self) -> BillingResult:
        self.connect_calls += 1
        return self.connect_result

    async def query_purchases(self, product_type: ProductType) -> QueryResult:
        self.query_calls.append(product_type)
        if not self.query_result.is_ok:
            return QueryResult(result=self.query_result)
        return QueryResult(result=self.query_result, entitlements=tuple(self.entitlements))

    async def acknowledge(self, purchase_token: str) -> BillingResult:
        self.ack_calls.append(purchase_token)
        if self.ack_results:
            return self.ack_results.popleft()
        return self.default_ack

    async def end_connection(self) -> None:
        self.end_calls += 1

    def drop_connection(self) -> None:
        if self.on_disconnected is not None:
            self.on_disconnected()

    def push_update(
        self, result: BillingResult, entitlements: Sequence[Entitlement] | None
    ) -> None:
        if self.on_purchases_updated is not None:
            self.on_purchases_updated(result, entitlements)


@dataclass(slots=True)
class _ManualHandle:
    delay: float
    action: Callable[[], Awaitable[None]]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class ManualScheduler:
    """Scheduler that only runs actions when a test asks it to."""

    now: float = 0.0
    handles: list[_ManualHandle] = field(default_factory=list["_ManualHandle"])

    def call_later(self, delay: float, action: Callable[[], Awaitable[None]]) -> _ManualHandle:
        handle = _ManualHandle(delay=delay, action=action)
        self.handles.append(handle)
        return handle

    def time(self) -> float:
        return self.now

    @property
    def delays(self) -> list[float]:
        return [handle.delay for handle in self.handles]

    @property
    def pending(self) -> list[_ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    async def run_next(self) -> bool:
        """Fire the oldest pending action; return False when nothing is pending."""

        pending = self.pending
        if not pending:
            return False
        handle = pending[0]
        handle.fired = True
        self.now += handle.delay
        await handle.action()
        return True

    async def run_all(self) -> int:
        fired = 0
        while await self.run_next():
            fired += 1
        return fired


class GatedBillingBackend(FakeBillingBackend):
    """Fake whose handshake and first acknowledgement wait until ``release`` is set."""

    def __init__(self, *, connect_error: Exception | None = None, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.connect_error = connect_error
        self.gate_connect = False
        self.release = asyncio.Event()

    async def start_connection(self) -> BillingResult:
        self.connect_calls += 1
        if self.gate_connect:
            await self.release.wait()
        if self.connect_error is not None:
            raise self.connect_error
        return self.connect_result

    async def acknowledge(self, purchase_token: str) -> BillingResult:
        self.ack_calls.append(purchase_token)
        if len(self.ack_calls) == 1:
            await self.release.wait()
        if self.ack_results:
            return self.ack_results.popleft()
        return self.default_ack
