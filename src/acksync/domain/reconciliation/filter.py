"""Classification of entitlements into the ones that need acknowledging."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from acksync.domain.model import Entitlement, PurchaseState

if TYPE_CHECKING:
    from collections.abc import Iterable

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconciliationPlan:
    """Disjoint partitions of one batch of entitlements. Canceled ones are dropped."""

    to_confirm: tuple[Entitlement, ...] = ()
    already_confirmed: tuple[Entitlement, ...] = ()
    pending: tuple[Entitlement, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_confirm or self.already_confirmed or self.pending)


def partition_entitlements(entitlements: Iterable[Entitlement]) -> ReconciliationPlan:
    to_confirm: list[Entitlement] = []
    already_confirmed: list[Entitlement] = []
    pending: list[Entitlement] = []

    for entitlement in entitlements:
        match entitlement.state:
            case PurchaseState.PURCHASED if entitlement.acknowledged:
                already_confirmed.append(entitlement)
            case PurchaseState.PURCHASED:
                to_confirm.append(entitlement)
            case PurchaseState.PENDING:
                pending.append(entitlement)
            case PurchaseState.CANCELED:
                continue

    return ReconciliationPlan(
        to_confirm=tuple(to_confirm),
        already_confirmed=tuple(already_confirmed),
        pending=tuple(pending),
    )


def log_plan(plan: ReconciliationPlan) -> None:
    """Informational log lines for the entitlements that need no action."""

    for entitlement in plan.already_confirmed:
        log.info("Already acknowledged, Order ID=%s", entitlement.display_order_id)
    for entitlement in plan.pending:
        log.info("Purchase pending, Order ID=%s", entitlement.display_order_id)
    for entitlement in plan.to_confirm:
        log.info("Found unacknowledged purchase, Order ID=%s", entitlement.display_order_id)
