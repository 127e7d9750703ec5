from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from acksync.config.retry import RetrySettings
from acksync.domain.model import (
    AcknowledgementAbandoned,
    BillingResponseCode,
    BillingResult,
    ConnectionState,
    PurchaseAcknowledged,
    PurchaseState,
    ReconciliationEvent,
    RetryScheduled,
)
from acksync.domain.reconciliation import BillingReconciler, CycleOutcome, CycleReport
from tests.support.billing import (
    FakeBillingBackend,
    GatedBillingBackend,
    ManualScheduler,
    failure,
    make_entitlement,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acksync.domain.model import Entitlement


def _build(
    backend: FakeBillingBackend,
    **kwargs: object,
) -> tuple[BillingReconciler, ManualScheduler, list[ReconciliationEvent]]:
    scheduler = ManualScheduler()
    events: list[ReconciliationEvent] = []
    reconciler = BillingReconciler(
        backend,
        scheduler=scheduler,
        event_sink=events.append,
        **kwargs,  # type: ignore[arg-type]
    )
    return reconciler, scheduler, events


def test_unacknowledged_purchase_is_acknowledged_once(caplog: pytest.LogCaptureFixture) -> None:
    backend = FakeBillingBackend(entitlements=[make_entitlement("ORD-1")])
    reconciler, scheduler, events = _build(backend)

    async def scenario() -> CycleReport:
        return await reconciler.check_payment_status()

    with caplog.at_level(logging.INFO):
        report = asyncio.run(scenario())

    assert report.outcome is CycleOutcome.COMPLETED
    assert events == [PurchaseAcknowledged(order_id="ORD-1", attempt=0)]
    assert scheduler.handles == []
    assert "already owned" not in caplog.text.lower()


def test_always_failing_acknowledgement_is_abandoned_after_three_retries() -> None:
    error = failure(BillingResponseCode.ERROR, "internal")
    backend = FakeBillingBackend(entitlements=[make_entitlement("ORD-1")], default_ack=error)
    reconciler, scheduler, events = _build(backend)

    async def scenario() -> None:
        await reconciler.check_payment_status()
        await scheduler.run_all()

    asyncio.run(scenario())

    assert scheduler.delays == [1.0, 2.0, 3.0]
    assert sum(isinstance(event, RetryScheduled) for event in events) == 3
    assert events[-1] == AcknowledgementAbandoned(order_id="ORD-1", attempt=3, result=error)
    assert len(backend.ack_calls) == 4


def test_pending_purchase_is_only_logged(caplog: pytest.LogCaptureFixture) -> None:
    backend = FakeBillingBackend(
        entitlements=[make_entitlement("ORD-2", state=PurchaseState.PENDING)]
    )
    reconciler, scheduler, events = _build(backend)

    with caplog.at_level(logging.INFO):
        report = asyncio.run(reconciler.run_cycle())

    assert report.outcome is CycleOutcome.COMPLETED
    assert report.plan is not None
    assert len(report.plan.pending) == 1
    assert backend.ack_calls == []
    assert events == []
    assert scheduler.handles == []
    assert reconciler.retrier.in_flight == {}
    assert "Purchase pending, Order ID=ORD-2" in caplog.text


def test_connect_failure_ends_cycle_without_query() -> None:
    backend = FakeBillingBackend(
        entitlements=[make_entitlement("ORD-1")],
        connect_result=failure(BillingResponseCode.BILLING_UNAVAILABLE),
    )
    reconciler, _scheduler, events = _build(backend)

    report = asyncio.run(reconciler.run_cycle())

    assert report.outcome is CycleOutcome.CONNECTION_FAILED
    assert report.result is not None
    assert report.result.response_code is BillingResponseCode.BILLING_UNAVAILABLE
    assert backend.query_calls == []
    assert backend.ack_calls == []
    assert events == []


def test_query_failure_ends_cycle_without_acknowledging() -> None:
    backend = FakeBillingBackend(
        entitlements=[make_entitlement("ORD-1")],
        query_result=failure(BillingResponseCode.SERVICE_UNAVAILABLE),
    )
    reconciler, _scheduler, _events = _build(backend)

    report = asyncio.run(reconciler.run_cycle())

    assert report.outcome is CycleOutcome.QUERY_FAILED
    assert backend.ack_calls == []


def test_only_unacknowledged_purchases_are_submitted() -> None:
    backend = FakeBillingBackend(
        entitlements=[
            make_entitlement("ORD-1"),
            make_entitlement("ORD-2", acknowledged=True),
            make_entitlement("ORD-3", state=PurchaseState.PENDING),
            make_entitlement("ORD-4", state=PurchaseState.CANCELED),
            make_entitlement("ORD-5"),
        ]
    )
    reconciler, _scheduler, events = _build(backend)

    asyncio.run(reconciler.run_cycle())

    assert sorted(backend.ack_calls) == ["token-ORD-1", "token-ORD-5"]
    assert {event.order_id for event in events} == {"ORD-1", "ORD-5"}


def test_verifier_gates_acknowledgement() -> None:
    backend = FakeBillingBackend(
        entitlements=[make_entitlement("ORD-1"), make_entitlement("ORD-2")]
    )
    seen: list[str] = []

    async def verifier(entitlements: Sequence[Entitlement]) -> Sequence[Entitlement]:
        seen.extend(e.display_order_id for e in entitlements)
        return [e for e in entitlements if e.order_id == "ORD-2"]

    reconciler, _scheduler, _events = _build(backend, verifier=verifier)

    asyncio.run(reconciler.run_cycle())

    assert seen == ["ORD-1", "ORD-2"]
    assert backend.ack_calls == ["token-ORD-2"]


def test_new_cycle_restarts_abandoned_retry_from_scratch() -> None:
    backend = FakeBillingBackend(
        entitlements=[make_entitlement("ORD-1")], default_ack=failure()
    )
    reconciler, scheduler, events = _build(backend, retry=RetrySettings(max_retries=1))

    async def scenario() -> None:
        await reconciler.run_cycle()
        backend.drop_connection()
        await scheduler.run_all()
        await reconciler.run_cycle()

    asyncio.run(scenario())

    assert backend.connect_calls == 2
    assert len(backend.ack_calls) == 2
    assert reconciler.retrier.in_flight["ORD-1"].attempt == 1
    assert not any(isinstance(event, AcknowledgementAbandoned) for event in events)


def test_repeated_triggers_do_not_duplicate_in_flight_retries() -> None:
    backend = FakeBillingBackend(entitlements=[make_entitlement("ORD-1")], default_ack=failure())
    reconciler, scheduler, _events = _build(backend)

    async def scenario() -> None:
        first = reconciler.check_payment_status()
        second = reconciler.check_payment_status()
        await asyncio.gather(first, second)

    asyncio.run(scenario())

    assert len(backend.ack_calls) == 1
    assert len(scheduler.handles) == 1


def test_cleanup_cancels_retries_and_blocks_later_triggers() -> None:
    backend = FakeBillingBackend(entitlements=[make_entitlement("ORD-1")], default_ack=failure())
    reconciler, scheduler, _events = _build(backend)

    async def scenario() -> CycleReport:
        await reconciler.run_cycle()
        await reconciler.cleanup()
        await reconciler.cleanup()
        await scheduler.run_all()
        return await reconciler.check_payment_status()

    report = asyncio.run(scenario())

    assert report.outcome is CycleOutcome.CLOSED
    assert backend.end_calls == 1
    assert len(backend.ack_calls) == 1
    assert reconciler.connection.state is ConnectionState.DISCONNECTED


def test_cleanup_without_connecting_is_safe() -> None:
    backend = FakeBillingBackend()
    reconciler, _scheduler, _events = _build(backend)

    asyncio.run(reconciler.cleanup())

    assert backend.end_calls == 0


def test_pushed_purchase_update_is_reconciled() -> None:
    backend = FakeBillingBackend()
    reconciler, _scheduler, events = _build(backend)

    async def scenario() -> None:
        await reconciler.connection.connect()
        backend.push_update(BillingResult.ok(), [make_entitlement("ORD-9")])
        await reconciler.wait_idle()

    asyncio.run(scenario())

    assert events == [PurchaseAcknowledged(order_id="ORD-9", attempt=0)]


@pytest.mark.parametrize(
    ("code", "message"),
    [
        (BillingResponseCode.USER_CANCELED, "User canceled purchase"),
        (BillingResponseCode.ITEM_ALREADY_OWNED, "Item already owned"),
        (BillingResponseCode.ERROR, "onPurchasesUpdated failed, response=ERROR"),
    ],
)
def test_pushed_non_ok_updates_are_only_logged(
    caplog: pytest.LogCaptureFixture, code: BillingResponseCode, message: str
) -> None:
    backend = FakeBillingBackend()
    reconciler, _scheduler, events = _build(backend)
    pending = make_entitlement("ORD-7", state=PurchaseState.PENDING)

    async def scenario() -> None:
        await reconciler.connection.connect()
        backend.push_update(BillingResult(code), [pending, make_entitlement("ORD-8")])
        await reconciler.wait_idle()

    with caplog.at_level(logging.INFO):
        asyncio.run(scenario())

    assert message in caplog.text
    assert "Purchase pending, Order ID=ORD-7" in caplog.text
    assert backend.ack_calls == []
    assert events == []


def test_cancelled_cycle_does_not_block_the_next_cycle() -> None:
    backend = GatedBillingBackend(entitlements=[make_entitlement("ORD-1")])
    reconciler, _, events = _build(backend)

    async def scenario() -> CycleReport:
        first = reconciler.check_payment_status()
        while not backend.ack_calls:
            await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        report = await reconciler.check_payment_status()
        await asyncio.wait_for(reconciler.wait_idle(), timeout=1.0)
        return report

    report = asyncio.run(scenario())

    assert report.outcome is CycleOutcome.COMPLETED
    assert backend.ack_calls == ["token-ORD-1", "token-ORD-1"]
    assert events == [PurchaseAcknowledged(order_id="ORD-1", attempt=0)]
