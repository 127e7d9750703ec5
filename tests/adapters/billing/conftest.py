"""Shared fixtures for billing adapter tests."""

from __future__ import annotations

import pytest

from acksync.config.billing import BillingConfig
from acksync.config.http_resilience import ResilienceConfig
from acksync.domain.model import ProductType


@pytest.fixture
def billing_config() -> BillingConfig:
    return BillingConfig(
        package_name="com.example.app",
        api_token="secret",  # noqa: S106
        product_type=ProductType.SUBS,
        resilience=ResilienceConfig(name="billing", base_url="https://billing.test/api/"),
    )
