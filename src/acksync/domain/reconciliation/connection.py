"""Lifecycle of the session with the billing backend."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from acksync.domain.model import BillingResponseCode, BillingResult, ConnectionState

if TYPE_CHECKING:
    from collections.abc import Callable

    from acksync.domain.ports import BillingBackend

log = getLogger(__name__)


class ConnectionManager:
    """Owns the backend handle and the connection state.

    Other components only ever ask ``is_ready()``; they reach the backend
    through ``backend`` but never change the connection state themselves.
    """

    def __init__(self, backend: BillingBackend) -> None:
        self._backend = backend
        self._state = ConnectionState.DISCONNECTED
        self._pending: asyncio.Future[BillingResult] | None = None
        backend.set_listeners(on_disconnected=self.handle_service_disconnected)

    @property
    def backend(self) -> BillingBackend:
        return self._backend

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    async def connect(
        self,
        on_finished: Callable[[BillingResult], None] | None = None,
    ) -> BillingResult:
        """Establish a session; ``on_finished`` is invoked exactly once with the outcome."""

        if self._state is ConnectionState.READY:
            result = BillingResult.ok()
        elif self._pending is not None:
            result = await asyncio.shield(self._pending)
        else:
            result = await self._start()

        if on_finished is not None:
            on_finished(result)
        return result

    async def _start(self) -> BillingResult:
        loop = asyncio.get_running_loop()
        pending: asyncio.Future[BillingResult] = loop.create_future()
        self._pending = pending
        self._state = ConnectionState.CONNECTING
        try:
            result = await self._backend.start_connection()
        except BaseException as exc:
            self._state = ConnectionState.DISCONNECTED
            log.exception("Billing setup raised")
            pending.set_result(
                BillingResult(BillingResponseCode.ERROR, str(exc) or type(exc).__name__)
            )
            raise
        finally:
            self._pending = None

        if self._state is not ConnectionState.CONNECTING:
            # disconnect() ran while the handshake was in flight and already ended the session
            result = BillingResult.not_ready("Connection closed while connecting")
        elif result.is_ok:
            self._state = ConnectionState.READY
            log.info("Billing setup finished successfully")
        else:
            self._state = ConnectionState.DISCONNECTED
            log.error(
                "Billing setup failed, code=%s, msg=%s",
                result.response_code.name,
                result.debug_message,
            )
        pending.set_result(result)
        return result

    def handle_service_disconnected(self) -> None:
        """Backend-initiated disconnect. The next trigger reconnects."""

        if self._state is not ConnectionState.READY:
            return
        self._state = ConnectionState.DISCONNECTED_UNEXPECTEDLY
        log.error("Billing service disconnected")

    async def disconnect(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            return
        self._state = ConnectionState.DISCONNECTED
        await self._backend.end_connection()
        log.info("Billing connection closed")
