"""Port for gating acknowledgement behind an external verification step."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acksync.domain.model import Entitlement

log = getLogger(__name__)


@runtime_checkable
class PurchaseVerifier(Protocol):
    """Return the subset of ``entitlements`` that passed verification."""

    async def __call__(self, entitlements: Sequence[Entitlement]) -> Sequence[Entitlement]: ...


async def accept_unverified(entitlements: Sequence[Entitlement]) -> Sequence[Entitlement]:
    """Pass-through verifier for deployments that verify out of band."""

    for entitlement in entitlements:
        log.info(
            "Skipping server verification, acknowledging directly. Order ID=%s",
            entitlement.display_order_id,
        )
    return entitlements


if TYPE_CHECKING:
    _verifier_check: PurchaseVerifier = accept_unverified
