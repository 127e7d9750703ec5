"""Billing backend configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from acksync.domain.model import ProductType

from .env import env_str, require_env_vars
from .errors import InvalidConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

BILLING_TIMEOUT_SECONDS = 10.0
DEFAULT_PRODUCT_TYPE = ProductType.SUBS


@dataclass(frozen=True, slots=True)
class BillingConfig:
    """Holds billing API configuration values."""

    package_name: str
    api_token: str
    product_type: ProductType
    resilience: ResilienceConfig


def parse_product_type(value: str, *, name: str = "ACKSYNC_PRODUCT_TYPE") -> ProductType:
    try:
        return ProductType(value.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in ProductType)
        raise InvalidConfigurationError(name, value, f"one of {choices}") from None


def get_billing_config(*, resilience: ResilienceConfig | None = None) -> BillingConfig:
    values = require_env_vars(("BILLING_API_URL", "BILLING_API_TOKEN", "BILLING_PACKAGE_NAME"))
    product_type = parse_product_type(env_str("ACKSYNC_PRODUCT_TYPE", DEFAULT_PRODUCT_TYPE))
    api_token = values["BILLING_API_TOKEN"]
    return BillingConfig(
        package_name=values["BILLING_PACKAGE_NAME"],
        api_token=api_token,
        product_type=product_type,
        resilience=resilience
        or ResilienceConfig(
            name="billing",
            base_url=values["BILLING_API_URL"],
            timeout_seconds=BILLING_TIMEOUT_SECONDS,
            retry=RetryPolicy(),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers={"Authorization": f"Bearer {api_token}"},
        ),
    )
