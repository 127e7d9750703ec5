"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from acksync.adapters.billing import HttpBillingBackend
from acksync.config.retry import get_retry_settings
from acksync.domain.model import (
    AcknowledgementAbandoned,
    ProductType,
    PurchaseAcknowledged,
    ReconciliationEvent,
    RetryScheduled,
)
from acksync.domain.reconciliation import BillingReconciler, CycleReport

if TYPE_CHECKING:
    from acksync.config.retry import RetrySettings
    from acksync.domain.ports import BillingBackend, PurchaseVerifier, Scheduler

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationRun:
    report: CycleReport
    events: list[ReconciliationEvent] = field(default_factory=list["ReconciliationEvent"])

    @property
    def acknowledged(self) -> int:
        return sum(isinstance(event, PurchaseAcknowledged) for event in self.events)

    @property
    def abandoned(self) -> int:
        return sum(isinstance(event, AcknowledgementAbandoned) for event in self.events)

    @property
    def retries(self) -> int:
        return sum(isinstance(event, RetryScheduled) for event in self.events)


async def reconcile_purchases(
    *,
    backend: BillingBackend | None = None,
    product_type: ProductType | None = None,
    retry: RetrySettings | None = None,
    scheduler: Scheduler | None = None,
    verifier: PurchaseVerifier | None = None,
    wait: bool = True,
) -> ReconciliationRun:
    """Run one reconciliation cycle, optionally wait for its retries, then clean up."""

    if backend is None:
        http_backend = HttpBillingBackend()
        effective_type = product_type or http_backend.config.product_type
        effective_backend: BillingBackend = http_backend
    else:
        effective_type = product_type or ProductType.SUBS
        effective_backend = backend

    events: list[ReconciliationEvent] = []
    reconciler = BillingReconciler(
        effective_backend,
        product_type=effective_type,
        retry=retry or get_retry_settings(),
        scheduler=scheduler,
        verifier=verifier,
        event_sink=events.append,
    )
    log.info("Starting reconciliation: product_type=%s, wait=%s", effective_type, wait)
    try:
        report = await reconciler.check_payment_status()
        if wait and report.succeeded:
            await reconciler.wait_idle()
    finally:
        await reconciler.cleanup()

    run = ReconciliationRun(report=report, events=events)
    log.info(
        f"Finished reconciliation: outcome={report.outcome}, acknowledged={run.acknowledged}, "
        f"retries={run.retries}, abandoned={run.abandoned}"
    )
    return run


def check_payment_status(
    *,
    backend: BillingBackend | None = None,
    product_type: ProductType | None = None,
    retry: RetrySettings | None = None,
    wait: bool = True,
) -> ReconciliationRun:
    """Blocking wrapper around ``reconcile_purchases`` for scripts and the CLI."""

    return asyncio.run(
        reconcile_purchases(backend=backend, product_type=product_type, retry=retry, wait=wait)
    )
