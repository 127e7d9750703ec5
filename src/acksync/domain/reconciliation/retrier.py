"""Acknowledgement of entitlements with bounded, linearly increasing retries.

Each entitlement moves through ``Idle -> Attempting -> Confirmed | Abandoned``;
``Attempting`` may repeat up to ``max_retries`` times. The retry delay before
the n-th retry (1-based) is ``n * base_interval`` seconds, so the default
policy waits 1s, 2s and 3s before giving up after the fourth failed call.

A retry that fires while the connection is no longer ready is dropped without
rescheduling. The next reconciliation cycle rediscovers the entitlement as
unacknowledged and starts again from attempt zero.
"""

from __future__ import annotations

import asyncio
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from acksync.config.retry import DEFAULT_BASE_INTERVAL_SECONDS, DEFAULT_MAX_RETRIES
from acksync.domain.model import (
    AcknowledgementAbandoned,
    AcknowledgementSkipped,
    BillingResponseCode,
    BillingResult,
    PurchaseAcknowledged,
    RetryAttempt,
    RetryScheduled,
)
from acksync.domain.ports import AsyncioScheduler

if TYPE_CHECKING:
    from collections.abc import Callable

    from acksync.domain.model import Entitlement, ReconciliationEvent
    from acksync.domain.ports import ScheduledHandle, Scheduler

    from .connection import ConnectionManager

log = getLogger(__name__)

type EventSink = Callable[[ReconciliationEvent], None]


def _discard_event(_event: ReconciliationEvent) -> None:
    return None


class AcknowledgementRetrier:
    def __init__(
        self,
        connection: ConnectionManager,
        *,
        scheduler: Scheduler | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_interval: float = DEFAULT_BASE_INTERVAL_SECONDS,
        event_sink: EventSink | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_interval < 0:
            raise ValueError("base_interval must be non-negative")
        self._connection = connection
        self._scheduler = scheduler or AsyncioScheduler()
        self._max_retries = max_retries
        self._base_interval = base_interval
        self._emit = event_sink or _discard_event
        self._in_flight: dict[str, RetryAttempt] = {}
        self._handles: dict[str, ScheduledHandle] = {}
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def in_flight(self) -> dict[str, RetryAttempt]:
        """Outstanding attempts keyed by order (a copy)."""

        return dict(self._in_flight)

    def retry_delay(self, attempt: int) -> float:
        """Delay before the retry that follows a failed call numbered ``attempt``."""

        return (attempt + 1) * self._base_interval

    async def confirm(self, entitlement: Entitlement) -> None:
        order_id = entitlement.display_order_id
        if not self._connection.is_ready():
            log.error("BillingClient not ready for acknowledgement, Order ID=%s", order_id)
            self._emit(AcknowledgementSkipped(order_id=order_id, result=BillingResult.not_ready()))
            return

        key = entitlement.retry_key
        if key in self._in_flight:
            log.info("Acknowledgement already in progress, Order ID=%s", order_id)
            return

        record = RetryAttempt(order_id=order_id, purchase_token=entitlement.purchase_token)
        self._in_flight[key] = record
        self._idle.clear()
        await self._guarded_attempt(key, record)

    async def _guarded_attempt(self, key: str, record: RetryAttempt) -> None:
        try:
            await self._attempt(key, record)
        except BaseException:
            # cancelled mid-call; free the order so the next cycle starts from attempt zero
            if self._in_flight.get(key) is record:
                self._release(key)
            raise

    async def _attempt(self, key: str, record: RetryAttempt) -> None:
        try:
            result = await self._connection.backend.acknowledge(record.purchase_token)
        except Exception as exc:
            log.exception("Acknowledgement call raised, Order ID=%s", record.order_id)
            result = BillingResult(BillingResponseCode.ERROR, str(exc))

        if self._in_flight.get(key) is not record:
            # cancelled while the call was in flight
            return

        if result.is_ok:
            log.info("Purchase acknowledged successfully, Order ID=%s", record.order_id)
            self._release(key)
            self._emit(PurchaseAcknowledged(order_id=record.order_id, attempt=record.attempt))
            return

        log.error(
            "Failed to acknowledge, code=%s, msg=%s",
            result.response_code.name,
            result.debug_message,
        )
        if record.attempt >= self._max_retries:
            log.error(
                "Giving up acknowledgement after %d retries, Order ID=%s",
                record.attempt,
                record.order_id,
            )
            self._release(key)
            self._emit(
                AcknowledgementAbandoned(
                    order_id=record.order_id, attempt=record.attempt, result=result
                )
            )
            return

        delay = self.retry_delay(record.attempt)
        record.attempt += 1
        record.scheduled_at = self._scheduler.time() + delay
        log.info(
            "Retrying acknowledgement, attempt %d for Order ID=%s in %.1fs",
            record.attempt,
            record.order_id,
            delay,
        )
        self._handles[key] = self._scheduler.call_later(delay, partial(self._fire, key, record))
        self._emit(
            RetryScheduled(
                order_id=record.order_id,
                attempt=record.attempt,
                delay_seconds=delay,
                result=result,
            )
        )

    async def _fire(self, key: str, record: RetryAttempt) -> None:
        self._handles.pop(key, None)
        if self._in_flight.get(key) is not record:
            return
        if not self._connection.is_ready():
            log.debug(
                "Connection not ready, dropping scheduled retry %d for Order ID=%s",
                record.attempt,
                record.order_id,
            )
            self._release(key)
            return
        await self._guarded_attempt(key, record)

    def _release(self, key: str) -> None:
        self._in_flight.pop(key, None)
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()
        if not self._in_flight:
            self._idle.set()

    def cancel_all(self) -> None:
        """Drop every outstanding attempt and cancel its scheduled retry."""

        for key in list(self._in_flight):
            self._release(key)

    async def join(self) -> None:
        """Wait until no acknowledgement is outstanding."""

        await self._idle.wait()
