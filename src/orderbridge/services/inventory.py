from __future__ import annotations

import logging
from dataclasses import dataclass

from orderbridge.core.db import OrderBridgeRepository, ProductVariant, utc_now_iso

from .notifier import OversellNotice, OversellNotifier


@dataclass(slots=True)
class DepletionResult:
    requested: int
    taken_from_pools: int = 0
    taken_from_variant: int = 0
    unfulfilled: int = 0

    @property
    def taken(self) -> int:
        return self.taken_from_pools + self.taken_from_variant

    @property
    def oversold(self) -> bool:
        return self.unfulfilled > 0


class InventoryReconciler:
    """Depletes stock for sales that already happened on an external platform.

    Stock is taken from warehouse pools first (largest first, never touching
    reserved units), then from the variant's aggregate quantity. Every
    decrement is a conditional ``UPDATE ... WHERE quantity >= n`` and only
    counts when a row changed, so concurrent depletions can never drive a
    quantity below zero. Whatever cannot be covered is reported as oversell
    once the surrounding transaction commits.
    """

    def __init__(
        self,
        repository: OrderBridgeRepository,
        notifier: OversellNotifier,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.notifier = notifier
        self.logger = logger

    def deplete_stock(
        self,
        variant: ProductVariant,
        quantity: int,
        tenant_id: int,
        platform: str | None = None,
        order_ref: str | None = None,
    ) -> DepletionResult:
        result = DepletionResult(requested=max(quantity, 0))
        if quantity <= 0:
            return result

        remaining = quantity
        sold_at = utc_now_iso()

        with self.repository.transaction():
            for pool in self.repository.lock_stocked_pools(variant.id):
                if remaining <= 0:
                    break
                take = min(pool.available, remaining)
                if take <= 0:
                    continue
                if self.repository.decrement_pool(pool.id, take, sold_at):
                    remaining -= take
                    result.taken_from_pools += take

            if remaining > 0:
                take = min(self.repository.variant_quantity(variant.id), remaining)
                if take > 0 and self.repository.decrement_variant(variant.id, take):
                    remaining -= take
                    result.taken_from_variant += take

            if remaining > 0:
                result.unfulfilled = remaining
                self.logger.warning(
                    "Oversell: variant %s (sku %s) requested %s, unfulfilled %s, platform %s, order %s",
                    variant.id,
                    variant.sku,
                    quantity,
                    remaining,
                    platform,
                    order_ref,
                )
                notice = OversellNotice(
                    tenant_id=tenant_id,
                    variant_id=variant.id,
                    sku=variant.sku,
                    requested=quantity,
                    unfulfilled=remaining,
                    platform=platform,
                    order_ref=order_ref,
                )
                self.repository.on_commit(lambda: self.notifier.notify_oversold(notice))

        return result
