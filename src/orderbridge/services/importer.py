from __future__ import annotations

import logging
from dataclasses import asdict
from decimal import Decimal

from orderbridge.config import Settings
from orderbridge.core.db import (
    ExternalOrderRecord,
    InternalOrder,
    OrderBridgeRepository,
    PlatformConnection,
    utc_now_iso,
)
from orderbridge.core.normalize import (
    REFUND_PAYMENT_STATUSES,
    AddressData,
    NormalizedLineItem,
    coerce_status,
    resolve_platform,
)

from .channels import SalesChannelProvisioner
from .inventory import InventoryReconciler
from .jobs import INVENTORY_PUSH, RETURNS_RESYNC, STATUS_RESYNC, JobScheduler, SqliteJobScheduler
from .notifier import OversellNotifier, build_oversell_notifier

PAYMENT_METHOD = "external"
PAYMENT_COMPLETED = "completed"


def _as_dict(address: AddressData | None) -> dict | None:
    return asdict(address) if address is not None else None


class LedgerConflictError(RuntimeError):
    """The ledger row was linked to another order while this import ran."""


def platform_label(platform: str) -> str:
    resolved = resolve_platform(platform)
    return resolved.label if resolved is not None else platform


class OrderImporter:
    def __init__(
        self,
        settings: Settings,
        repository: OrderBridgeRepository,
        logger: logging.Logger | logging.LoggerAdapter,
        *,
        provisioner: SalesChannelProvisioner | None = None,
        inventory: InventoryReconciler | None = None,
        scheduler: JobScheduler | None = None,
        notifier: OversellNotifier | None = None,
        correlation_id: str | None = None,
    ):
        self.settings = settings
        self.repository = repository
        self.logger = logger
        self.correlation_id = correlation_id
        self.provisioner = provisioner or SalesChannelProvisioner(repository, logger)
        self.scheduler = scheduler or SqliteJobScheduler(repository, logger)
        if inventory is None:
            inventory = InventoryReconciler(
                repository,
                notifier or build_oversell_notifier(settings, repository, logger),
                logger,
            )
        self.inventory = inventory

    def _linked_order(self, record: ExternalOrderRecord) -> InternalOrder:
        order = self.repository.get_order(record.order_id)
        if order is None:
            raise LookupError(f"Ledger row {record.id} points at missing order {record.order_id}")
        return order

    def import_order(self, record: ExternalOrderRecord) -> InternalOrder:
        """Create the internal order for a ledger row exactly once.

        Everything runs in one unit of work: any failure rolls it back and
        propagates, leaving the ledger row unlinked so a redelivery can retry.
        Follow-up jobs are scheduled only after the commit. The order starts
        in the platform's normalized status rather than ``pending``.
        """
        if record.is_imported():
            return self._linked_order(record)

        connection = self.repository.get_connection(record.connection_id)
        if connection is None:
            raise LookupError(f"Platform connection {record.connection_id} not found")

        affected_products: set[int] = set()
        with self.repository.transaction():
            current = self.repository.get_external_order(record.id)
            if current is None:
                raise LookupError(f"Ledger row {record.id} not found")
            if current.is_imported():
                self.logger.info("Ledger row %s was imported concurrently", current.id)
                return self._linked_order(current)

            label = platform_label(current.platform)
            customer_id = self._resolve_customer(current)
            channel_id = self.provisioner.resolve_channel(connection, current.platform, current.tenant_id)

            order_id = self.repository.insert_order(
                tenant_id=current.tenant_id,
                sales_channel_id=channel_id,
                customer_id=customer_id,
                status=str(coerce_status(current.status)),
                sub_total=current.subtotal,
                shipping_cost=current.shipping_cost,
                sales_tax=current.tax,
                discount_cost=current.discount,
                total=current.total,
                currency=current.currency,
                billing_address=_as_dict(current.billing_address),
                shipping_address=_as_dict(current.shipping_address),
                source_platform=current.platform,
                external_marketplace_id=current.external_order_id,
                date_of_purchase=current.ordered_at,
            )

            for item in current.line_items:
                product_id = self._create_item(order_id, current, item, label)
                if product_id is not None:
                    affected_products.add(product_id)

            if (current.payment_status or "").lower() == "paid" and current.total > Decimal("0"):
                self.repository.insert_payment(
                    tenant_id=current.tenant_id,
                    order_id=order_id,
                    customer_id=customer_id,
                    payment_method=PAYMENT_METHOD,
                    status=PAYMENT_COMPLETED,
                    amount=current.total,
                    currency=current.currency,
                    notes=f"Payment from {label}",
                    paid_at=current.ordered_at,
                )

            if not self.repository.link_external_order(current.id, order_id, utc_now_iso()):
                raise LedgerConflictError(f"Ledger row {current.id} is already linked to another order")

            self.repository.add_audit_log(
                correlation_id=self.correlation_id,
                entity_type="order",
                entity_id=str(order_id),
                action="imported",
                before_json=None,
                after_json={
                    "external_order_id": current.external_order_id,
                    "platform": current.platform,
                    "connection_id": current.connection_id,
                },
            )
            self.repository.on_commit(
                lambda: self._schedule_followups(current, connection, order_id, affected_products)
            )

        self.logger.info(
            "Imported %s order %s as order %s (%s items)",
            current.platform,
            current.order_ref,
            order_id,
            len(current.line_items),
        )
        return self._linked_order(self.repository.get_external_order(current.id) or current)

    def _resolve_customer(self, record: ExternalOrderRecord) -> int | None:
        customer = record.customer
        email = (customer.email or "").strip()
        if not email:
            return None
        return self.repository.find_or_create_customer(
            tenant_id=record.tenant_id,
            email=email,
            first_name=customer.first_name,
            last_name=customer.last_name,
            phone=customer.phone,
            external_id=customer.external_id,
        )

    def _create_item(
        self,
        order_id: int,
        record: ExternalOrderRecord,
        item: NormalizedLineItem,
        label: str,
    ) -> int | None:
        variant = self.repository.find_variant_by_sku(record.tenant_id, item.sku) if item.sku else None
        if variant is None:
            self.logger.info(
                "No variant for sku %s on order %s; item kept without stock effect",
                item.sku or "-",
                record.order_ref,
            )
            self.repository.insert_order_item(
                order_id=order_id,
                product_id=None,
                product_variant_id=None,
                category_id=None,
                sku=item.sku,
                title=item.title,
                quantity=item.quantity,
                price=item.price,
                cost=None,
                wholesale_value=None,
                discount=item.discount,
                tax=item.tax,
                external_item_id=item.external_id,
            )
            return None

        self.repository.insert_order_item(
            order_id=order_id,
            product_id=variant.product_id,
            product_variant_id=variant.id,
            category_id=variant.category_id,
            sku=item.sku or variant.sku,
            title=item.title,
            quantity=item.quantity,
            price=item.price,
            cost=variant.cost,
            wholesale_value=variant.wholesale_price,
            discount=item.discount,
            tax=item.tax,
            external_item_id=item.external_id,
        )
        self.inventory.deplete_stock(
            variant=variant,
            quantity=item.quantity,
            tenant_id=record.tenant_id,
            platform=label,
            order_ref=record.order_ref,
        )
        return variant.product_id

    def _schedule_followups(
        self,
        record: ExternalOrderRecord,
        connection: PlatformConnection,
        order_id: int,
        affected_products: set[int],
    ) -> None:
        payload = {"external_order_id": record.id, "order_id": order_id, "connection_id": connection.id}
        jobs: list[tuple[str, dict, int]] = [(STATUS_RESYNC, payload, self.settings.status_resync_delay_sec)]
        if (record.payment_status or "").lower() in REFUND_PAYMENT_STATUSES:
            jobs.append((RETURNS_RESYNC, payload, self.settings.returns_resync_delay_sec))
        if affected_products:
            jobs.append(
                (
                    INVENTORY_PUSH,
                    {
                        "tenant_id": record.tenant_id,
                        "product_ids": sorted(affected_products),
                        "source_connection_id": connection.id,
                    },
                    0,
                )
            )

        for job_type, job_payload, delay in jobs:
            try:
                self.scheduler.schedule(job_type, job_payload, delay)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("Failed to schedule %s for order %s: %s", job_type, order_id, exc)
