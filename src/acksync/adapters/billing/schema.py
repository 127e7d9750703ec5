"""Pydantic models describing the billing API payloads."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

WirePurchaseState = Literal["PURCHASED", "PENDING", "CANCELED"]


class BillingBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PurchasePayload(BillingBaseModel):
    order_id: str | None = Field(default=None, alias="orderId")
    purchase_token: str = Field(alias="purchaseToken")
    purchase_state: WirePurchaseState = Field(alias="purchaseState")
    acknowledged: bool = False
    product_type: Literal["subs", "inapp"] = Field(default="subs", alias="productType")
    product_ids: list[str] = Field(default_factory=list, alias="productIds")
    purchase_time: datetime | None = Field(default=None, alias="purchaseTime")

    @field_validator("order_id", mode="before")
    @classmethod
    def _blank_order_id(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("purchase_state", mode="before")
    @classmethod
    def _upper_state(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("product_type", mode="before")
    @classmethod
    def _lower_product_type(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class PurchasesResponse(BillingBaseModel):
    purchases: list[PurchasePayload] = Field(default_factory=list["PurchasePayload"])


class StatusResponse(BillingBaseModel):
    status: str
    message: str = ""


class ErrorDetail(BillingBaseModel):
    code: int
    message: str = ""


class ErrorResponse(BillingBaseModel):
    error: ErrorDetail


class PurchasesUpdatedNotification(BillingBaseModel):
    response_code: int = Field(alias="responseCode")
    debug_message: str = Field(default="", alias="debugMessage")
    purchases: list[PurchasePayload] | None = None
