from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from orderbridge.core.db import ExternalOrderRecord, OrderBridgeRepository, utc_now_iso
from orderbridge.core.normalize import (
    REFUND_PAYMENT_STATUSES,
    TERMINAL_STATUSES,
    NormalizedOrder,
    OrderStatus,
    status_ordinal,
)
from orderbridge.sources.models import PlatformOrderDto

from .jobs import RETURNS_RESYNC, JobScheduler


@dataclass(slots=True)
class StatusUpdate:
    """Latest external state of an order.

    ``status`` is written to the ledger as reported; ``order_status`` is the
    canonical candidate for the internal order and defaults to ``status``.
    """

    status: str | None
    fulfillment_status: str | None = None
    payment_status: str | None = None
    platform_data: dict[str, Any] | None = None
    order_status: str | None = None

    @property
    def candidate(self) -> str | None:
        return self.order_status or self.status

    @classmethod
    def from_normalized(cls, normalized: NormalizedOrder) -> StatusUpdate:
        return cls(
            status=str(normalized.status),
            fulfillment_status=normalized.fulfillment_status,
            payment_status=normalized.payment_status,
            platform_data=normalized.platform_data or None,
        )


def _clean(value: str | None) -> str:
    return str(value).strip().lower() if value else ""


def is_status_progression(current: str | None, candidate: str | None) -> bool:
    current_value = _clean(current)
    candidate_value = _clean(candidate)
    if not candidate_value or current_value == candidate_value:
        return False
    if candidate_value in TERMINAL_STATUSES:
        return True
    # cancelled and refunded are absorbing
    if current_value in TERMINAL_STATUSES:
        return False
    return status_ordinal(candidate_value) > status_ordinal(current_value)


def map_dto_status(dto: PlatformOrderDto) -> OrderStatus:
    status = _clean(dto.status)
    fulfilled = _clean(dto.fulfillment_status) == "fulfilled"
    paid = _clean(dto.payment_status) == "paid"

    if status == "cancelled":
        return OrderStatus.CANCELLED
    if status == "completed":
        return OrderStatus.COMPLETED if fulfilled and paid else OrderStatus.SHIPPED
    if fulfilled and paid:
        return OrderStatus.SHIPPED
    if paid:
        return OrderStatus.CONFIRMED
    if _clean(dto.payment_status) in REFUND_PAYMENT_STATUSES:
        return OrderStatus.REFUNDED
    return OrderStatus.PENDING


class StatusSynchronizer:
    def __init__(
        self,
        repository: OrderBridgeRepository,
        logger: logging.Logger | logging.LoggerAdapter,
        scheduler: JobScheduler | None = None,
        returns_delay_sec: int = 90,
        correlation_id: str | None = None,
    ):
        self.repository = repository
        self.logger = logger
        self.scheduler = scheduler
        self.returns_delay_sec = returns_delay_sec
        self.correlation_id = correlation_id

    def sync(self, record: ExternalOrderRecord, update: StatusUpdate) -> bool:
        """Record the latest external state; advance the internal order if it moves forward.

        Returns True when the internal order status changed.
        """
        synced_at = utc_now_iso()
        with self.repository.transaction():
            self.repository.update_external_order_status(
                record_id=record.id,
                status=update.status,
                fulfillment_status=update.fulfillment_status,
                payment_status=update.payment_status,
                platform_data=update.platform_data,
                synced_at=synced_at,
            )

            current = self.repository.get_external_order(record.id) or record
            if not current.is_imported():
                return False

            order = self.repository.get_order(current.order_id)
            if order is None:
                self.logger.warning("Ledger row %s points at missing order %s", current.id, current.order_id)
                return False

            candidate = _clean(update.candidate)
            if not is_status_progression(order.status, candidate):
                self.logger.info(
                    "Order %s keeps status %s (received %s)", order.id, order.status, candidate or "none"
                )
                return False

            self.repository.update_order_status(order.id, candidate)
            self.repository.add_audit_log(
                correlation_id=self.correlation_id,
                entity_type="order",
                entity_id=str(order.id),
                action="status_progression",
                before_json={"status": order.status},
                after_json={"status": candidate, "external_order_id": current.external_order_id},
            )

        self.logger.info("Order %s status %s -> %s", order.id, order.status, candidate)
        return True

    def sync_from_dto(self, record: ExternalOrderRecord, dto: PlatformOrderDto) -> bool:
        update = StatusUpdate(
            status=dto.status,
            fulfillment_status=dto.fulfillment_status,
            payment_status=dto.payment_status,
            platform_data=dto.metadata or None,
            order_status=map_dto_status(dto),
        )
        changed = self.sync(record, update)

        newly_refunded = (
            _clean(dto.payment_status) in REFUND_PAYMENT_STATUSES
            and _clean(record.payment_status) not in REFUND_PAYMENT_STATUSES
        )
        if newly_refunded and self.scheduler is not None and record.is_imported():
            try:
                self.scheduler.schedule(
                    RETURNS_RESYNC,
                    {"external_order_id": record.id, "order_id": record.order_id},
                    self.returns_delay_sec,
                )
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("Returns re-sync for ledger row %s not scheduled: %s", record.id, exc)

        return changed
