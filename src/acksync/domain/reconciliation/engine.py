"""Entry points of the reconciliation engine.

A reconciliation cycle runs connect -> query -> partition -> verify ->
acknowledge. Hosts call ``check_payment_status`` whenever entitlements might
have changed out of band and ``cleanup`` once when they shut down.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from acksync.config.retry import RetrySettings
from acksync.domain.model import BillingResponseCode, ProductType
from acksync.domain.ports import accept_unverified

from .connection import ConnectionManager
from .filter import ReconciliationPlan, log_plan, partition_entitlements
from .query import PurchaseQuery
from .retrier import AcknowledgementRetrier, EventSink

if TYPE_CHECKING:
    from collections.abc import Coroutine, Sequence

    from acksync.domain.model import BillingResult, Entitlement
    from acksync.domain.ports import BillingBackend, PurchaseVerifier, Scheduler

log = getLogger(__name__)


class CycleOutcome(StrEnum):
    COMPLETED = "completed"
    CONNECTION_FAILED = "connection_failed"
    QUERY_FAILED = "query_failed"
    NOT_READY = "not_ready"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class CycleReport:
    outcome: CycleOutcome
    result: BillingResult | None = None
    plan: ReconciliationPlan | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is CycleOutcome.COMPLETED


class BillingReconciler:
    """Acknowledge purchased-but-unacknowledged entitlements on demand."""

    def __init__(
        self,
        backend: BillingBackend,
        *,
        product_type: ProductType = ProductType.SUBS,
        retry: RetrySettings | None = None,
        scheduler: Scheduler | None = None,
        verifier: PurchaseVerifier | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._product_type = product_type
        self._verifier = verifier or accept_unverified
        self.connection = ConnectionManager(backend)
        self.query = PurchaseQuery(self.connection)
        retry = retry or RetrySettings()
        self.retrier = AcknowledgementRetrier(
            self.connection,
            scheduler=scheduler,
            max_retries=retry.max_retries,
            base_interval=retry.base_interval_seconds,
            event_sink=event_sink,
        )
        backend.set_listeners(on_purchases_updated=self.on_purchases_updated)
        self._cycle_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[object]] = set()
        self._closed = False

    def check_payment_status(self) -> asyncio.Task[CycleReport]:
        """Start a reconciliation cycle and return without waiting for it."""

        return self._spawn(self.run_cycle())

    async def run_cycle(self) -> CycleReport:
        async with self._cycle_lock:
            if self._closed:
                log.info("Reconciler closed, ignoring payment status check")
                return CycleReport(outcome=CycleOutcome.CLOSED)

            connected = await self.connection.connect()
            if not connected.is_ok:
                return CycleReport(outcome=CycleOutcome.CONNECTION_FAILED, result=connected)

            query = await self.query.query_active_entitlements(self._product_type)
            if not query.result.is_ok:
                outcome = (
                    CycleOutcome.NOT_READY
                    if query.result.response_code is BillingResponseCode.SERVICE_DISCONNECTED
                    else CycleOutcome.QUERY_FAILED
                )
                return CycleReport(outcome=outcome, result=query.result)

            plan = await self._handle_entitlements(query.entitlements)
            return CycleReport(outcome=CycleOutcome.COMPLETED, result=query.result, plan=plan)

    def on_purchases_updated(
        self, result: BillingResult, entitlements: Sequence[Entitlement] | None
    ) -> None:
        """Listener for purchase updates pushed by the backend."""

        match result.response_code:
            case BillingResponseCode.OK if entitlements is not None:
                self._spawn(self._handle_entitlements(entitlements))
            case BillingResponseCode.USER_CANCELED:
                log.info("User canceled purchase")
            case BillingResponseCode.ITEM_ALREADY_OWNED:
                log.info("Item already owned")
            case code:
                log.error("onPurchasesUpdated failed, response=%s", code.name)

        if result.response_code is not BillingResponseCode.OK:
            for entitlement in partition_entitlements(entitlements or ()).pending:
                log.info("Purchase pending, Order ID=%s", entitlement.display_order_id)

    async def _handle_entitlements(self, entitlements: Sequence[Entitlement]) -> ReconciliationPlan:
        for entitlement in entitlements:
            log.info(
                "Processing purchase, State=%s, Acknowledged=%s, Order ID=%s",
                entitlement.state,
                entitlement.acknowledged,
                entitlement.display_order_id,
            )
        plan = partition_entitlements(entitlements)
        log_plan(plan)
        if not plan.to_confirm:
            return plan

        verified = await self._verifier(plan.to_confirm)
        verified_keys = {entitlement.retry_key for entitlement in verified}
        for entitlement in plan.to_confirm:
            if entitlement.retry_key not in verified_keys:
                log.info(
                    "Verification rejected purchase, Order ID=%s", entitlement.display_order_id
                )

        candidates = [entitlement for entitlement in verified if entitlement.needs_acknowledgement]
        await asyncio.gather(*(self.retrier.confirm(entitlement) for entitlement in candidates))
        return plan

    async def wait_idle(self) -> None:
        """Wait for spawned work and every scheduled retry to settle."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.retrier.join()

    async def cleanup(self) -> None:
        """Stop retries and release the backend session. Safe to call repeatedly."""

        self._closed = True
        self.retrier.cancel_all()
        await self.connection.disconnect()

    def _spawn[T](self, coro: Coroutine[object, object, T]) -> asyncio.Task[T]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
