from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from acksync.app import check_payment_status
from acksync.config import (
    ConfigurationError,
    RetrySettings,
    configure_logging,
    get_retry_settings,
    parse_product_type,
)
from acksync.domain.model import ProductType

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Acknowledge purchased but unacknowledged entitlements"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Run one reconciliation cycle")
    check.add_argument(
        "--product-type",
        type=str,
        choices=[member.value for member in ProductType],
        help="Product class to reconcile (defaults to ACKSYNC_PRODUCT_TYPE or subs)",
    )
    check.add_argument(
        "--max-retries",
        type=int,
        help="Retries per acknowledgement before giving up (defaults to config)",
    )
    check.add_argument(
        "--retry-base-seconds",
        type=float,
        help="Base retry interval; the n-th retry waits n times this (defaults to config)",
    )
    check.add_argument(
        "--no-wait",
        action="store_true",
        help="Exit after the first acknowledgement attempts instead of waiting for retries",
    )
    return parser.parse_args(list(argv))


def _retry_settings(args: argparse.Namespace) -> RetrySettings:
    configured = get_retry_settings()
    max_retries = configured.max_retries if args.max_retries is None else args.max_retries
    base = (
        configured.base_interval_seconds
        if args.retry_base_seconds is None
        else args.retry_base_seconds
    )
    if max_retries < 0:
        raise ValueError("Max retries must be non-negative")
    if base < 0:
        raise ValueError("Retry base seconds must be non-negative")
    return RetrySettings(max_retries=max_retries, base_interval_seconds=base)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        retry = _retry_settings(parsed_args)
        product_type = (
            parse_product_type(parsed_args.product_type, name="--product-type")
            if parsed_args.product_type
            else None
        )
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        run = check_payment_status(
            product_type=product_type,
            retry=retry,
            wait=not parsed_args.no_wait,
        )
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)

    if not run.report.succeeded:
        log.error("Reconciliation cycle ended with %s", run.report.outcome)
        sys.exit(1)
