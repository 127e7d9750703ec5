"""Acknowledgement retry defaults."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_float, env_int

DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_BASE_INTERVAL_SECONDS: Final[float] = 1.0


@dataclass(frozen=True, slots=True)
class RetrySettings:
    max_retries: int = DEFAULT_MAX_RETRIES
    base_interval_seconds: float = DEFAULT_BASE_INTERVAL_SECONDS


def get_retry_settings() -> RetrySettings:
    return RetrySettings(
        max_retries=env_int("ACKSYNC_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        base_interval_seconds=env_float(
            "ACKSYNC_RETRY_BASE_SECONDS", DEFAULT_BASE_INTERVAL_SECONDS
        ),
    )
