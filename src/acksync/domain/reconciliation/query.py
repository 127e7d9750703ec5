"""Listing of the caller's current entitlements."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from acksync.domain.model import BillingResult
from acksync.domain.ports import QueryResult

if TYPE_CHECKING:
    from acksync.domain.model import ProductType

    from .connection import ConnectionManager

log = getLogger(__name__)


class PurchaseQuery:
    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    async def query_active_entitlements(self, product_type: ProductType) -> QueryResult:
        """Fetch every entitlement of ``product_type``. No retry at this layer."""

        if not self._connection.is_ready():
            log.error("BillingClient not ready, skipping purchase query")
            return QueryResult(result=BillingResult.not_ready())

        query = await self._connection.backend.query_purchases(product_type)
        if query.result.is_ok:
            log.info("Found %d purchases.", len(query.entitlements))
        else:
            log.error(
                "queryPurchases failed, response=%s, msg=%s",
                query.result.response_code.name,
                query.result.debug_message,
            )
        return query
