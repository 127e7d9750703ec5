"""Application configuration helpers."""

from __future__ import annotations

from acksync.common.logging import configure_logging

from .billing import BillingConfig, get_billing_config, parse_product_type
from .env import env_float, env_int, env_str, require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .retry import RetrySettings, get_retry_settings

__all__ = [
    "BillingConfig",
    "ConfigurationError",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "RetrySettings",
    "configure_logging",
    "env_float",
    "env_int",
    "env_str",
    "get_billing_config",
    "get_retry_settings",
    "parse_product_type",
    "require_env_var",
    "require_env_vars",
]
