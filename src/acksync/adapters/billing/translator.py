"""Translate billing API payloads into domain entitlements."""

from __future__ import annotations

from typing import TYPE_CHECKING

from acksync.domain.model import Entitlement, ProductType, PurchaseState

from .schema import PurchasePayload

if TYPE_CHECKING:
    from collections.abc import Mapping

_STATES: dict[str, PurchaseState] = {
    "PURCHASED": PurchaseState.PURCHASED,
    "PENDING": PurchaseState.PENDING,
    "CANCELED": PurchaseState.CANCELED,
}


def parse_entitlement(payload: PurchasePayload | Mapping[str, object]) -> Entitlement:
    model = (
        payload
        if isinstance(payload, PurchasePayload)
        else PurchasePayload.model_validate(payload)
    )
    return Entitlement(
        order_id=model.order_id,
        purchase_token=model.purchase_token,
        state=_STATES[model.purchase_state],
        acknowledged=model.acknowledged,
        product_type=ProductType(model.product_type),
        product_ids=tuple(model.product_ids),
        purchase_time=model.purchase_time,
    )
