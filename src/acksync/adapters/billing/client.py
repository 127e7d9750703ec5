"""HTTP implementation of the billing backend port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Unpack
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from acksync.adapters.http_resilience import ResilientClient
from acksync.config.billing import get_billing_config
from acksync.domain.model import BillingResponseCode, BillingResult
from acksync.domain.ports import QueryResult

from .schema import (
    ErrorResponse,
    PurchasesResponse,
    PurchasesUpdatedNotification,
    StatusResponse,
)
from .translator import parse_entitlement

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from acksync.adapters.http_resilience import RequestOptions
    from acksync.config.billing import BillingConfig
    from acksync.config.http_resilience import ResilienceConfig
    from acksync.domain.model import ProductType
    from acksync.domain.ports import BillingBackend, DisconnectListener, PurchasesUpdatedListener

log = getLogger(__name__)

_STATUS_CODES: dict[int, BillingResponseCode] = {
    400: BillingResponseCode.DEVELOPER_ERROR,
    401: BillingResponseCode.BILLING_UNAVAILABLE,
    403: BillingResponseCode.BILLING_UNAVAILABLE,
    404: BillingResponseCode.ITEM_NOT_OWNED,
    409: BillingResponseCode.ITEM_ALREADY_OWNED,
    429: BillingResponseCode.SERVICE_UNAVAILABLE,
}


class BillingAPIError(RuntimeError):
    """Raised when the billing API answers with an error or an unusable payload."""

    def __init__(self, message: str, *, code: BillingResponseCode) -> None:
        super().__init__(message)
        self.code = code

    def to_result(self) -> BillingResult:
        return BillingResult(self.code, str(self))


def response_code_for_status(status_code: int) -> BillingResponseCode:
    if 200 <= status_code < 300:  # noqa: PLR2004
        return BillingResponseCode.OK
    if status_code >= 500:  # noqa: PLR2004
        return BillingResponseCode.SERVICE_UNAVAILABLE
    return _STATUS_CODES.get(status_code, BillingResponseCode.ERROR)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class HttpBillingBackend:
    """Billing backend reached over a REST API.

    A session is an open HTTP client. Transport failures are reported as
    ``SERVICE_DISCONNECTED`` and notify the disconnect listener; the backend
    never reconnects on its own.
    """

    def __init__(
        self,
        *,
        config: BillingConfig | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config or get_billing_config()
        self._client_factory = client_factory or _default_client_factory
        self._client: ResilientClient | None = None
        self._on_disconnected: DisconnectListener | None = None
        self._on_purchases_updated: PurchasesUpdatedListener | None = None

    @property
    def config(self) -> BillingConfig:
        return self._config

    def set_listeners(
        self,
        *,
        on_disconnected: DisconnectListener | None = None,
        on_purchases_updated: PurchasesUpdatedListener | None = None,
    ) -> None:
        if on_disconnected is not None:
            self._on_disconnected = on_disconnected
        if on_purchases_updated is not None:
            self._on_purchases_updated = on_purchases_updated

    async def start_connection(self) -> BillingResult:
        await self.end_connection()
        self._client = self._client_factory(self._config.resilience)
        try:
            response = await self._request("GET", self._path("status"))
            status = StatusResponse.model_validate(response.json())
        except BillingAPIError as exc:
            await self.end_connection()
            return exc.to_result()
        except (ValueError, ValidationError):
            await self.end_connection()
            return BillingResult(BillingResponseCode.ERROR, "Unexpected status payload")

        if status.status.lower() != "ok":
            await self.end_connection()
            return BillingResult(BillingResponseCode.BILLING_UNAVAILABLE, status.message)
        return BillingResult.ok()

    async def query_purchases(self, product_type: ProductType) -> QueryResult:
        if self._client is None:
            return QueryResult(result=BillingResult.not_ready())
        try:
            response = await self._request(
                "GET", self._path("purchases"), params={"productType": product_type.value}
            )
            payload = PurchasesResponse.model_validate(response.json())
        except BillingAPIError as exc:
            return QueryResult(result=exc.to_result())
        except (ValueError, ValidationError) as exc:
            log.error(f"Unexpected purchases payload: {exc}")
            return QueryResult(
                result=BillingResult(BillingResponseCode.ERROR, "Unexpected purchases payload")
            )

        entitlements = tuple(parse_entitlement(item) for item in payload.purchases)
        return QueryResult(result=BillingResult.ok(), entitlements=entitlements)

    async def acknowledge(self, purchase_token: str) -> BillingResult:
        if self._client is None:
            return BillingResult.not_ready()
        token = quote(purchase_token, safe="")
        try:
            await self._request("POST", self._path(f"purchases/{token}:acknowledge"), json={})
        except BillingAPIError as exc:
            return exc.to_result()
        return BillingResult.ok()

    def handle_notification(self, payload: Mapping[str, object]) -> BillingResult:
        """Feed a pushed purchases-updated notification to the registered listener."""

        try:
            notification = PurchasesUpdatedNotification.model_validate(payload)
        except ValidationError as exc:
            log.error(f"Ignoring malformed purchases notification: {exc}")
            return BillingResult(BillingResponseCode.DEVELOPER_ERROR, "Malformed notification")

        result = BillingResult(
            BillingResponseCode.coerce(notification.response_code), notification.debug_message
        )
        entitlements = (
            [parse_entitlement(item) for item in notification.purchases]
            if notification.purchases is not None
            else None
        )
        if self._on_purchases_updated is not None:
            self._on_purchases_updated(result, entitlements)
        return result

    async def end_connection(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    def _path(self, suffix: str) -> str:
        package = quote(self._config.package_name, safe="")
        return f"v1/applications/{package}/{suffix}"

    async def _request(
        self, method: str, path: str, **kwargs: Unpack[RequestOptions]
    ) -> httpx.Response:
        client = self._client
        if client is None:
            raise BillingAPIError(
                "Billing connection is not open", code=BillingResponseCode.SERVICE_DISCONNECTED
            )
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            log.error(f"Billing API transport error on {method} {path}: {exc}")
            if self._on_disconnected is not None:
                self._on_disconnected()
            raise BillingAPIError(
                str(exc) or type(exc).__name__, code=BillingResponseCode.SERVICE_DISCONNECTED
            ) from exc

        code = response_code_for_status(response.status_code)
        if code is BillingResponseCode.OK:
            return response

        message = response.reason_phrase
        try:
            error = ErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            pass
        else:
            reported = BillingResponseCode.coerce(error.error.code)
            if reported is not BillingResponseCode.OK:
                code = reported
            message = error.error.message or message
        log.error(f"Billing API error {response.status_code} ({code.name}): {message}")
        raise BillingAPIError(message, code=code)


if TYPE_CHECKING:
    _backend_check: BillingBackend = HttpBillingBackend()
