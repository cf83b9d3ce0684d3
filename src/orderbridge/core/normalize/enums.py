from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    SHOPIFY = "shopify"
    EBAY = "ebay"
    AMAZON = "amazon"
    ETSY = "etsy"
    WALMART = "walmart"
    WOOCOMMERCE = "woocommerce"

    @property
    def label(self) -> str:
        return PLATFORM_LABELS[self]


PLATFORM_LABELS = {
    Platform.SHOPIFY: "Shopify",
    Platform.EBAY: "eBay",
    Platform.AMAZON: "Amazon",
    Platform.ETSY: "Etsy",
    Platform.WALMART: "Walmart",
    Platform.WOOCOMMERCE: "WooCommerce",
}


def resolve_platform(value: str | Platform | None) -> Platform | None:
    if isinstance(value, Platform):
        return value
    if not value:
        return None
    try:
        return Platform(str(value).strip().lower())
    except ValueError:
        return None


class OrderStatus(StrEnum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Ordinal of each non-terminal status; a transition is forward when the
# candidate ordinal is strictly greater than the current one.
STATUS_PROGRESSION: dict[str, int] = {
    OrderStatus.DRAFT: 0,
    OrderStatus.PENDING: 1,
    OrderStatus.CONFIRMED: 2,
    OrderStatus.PROCESSING: 3,
    OrderStatus.SHIPPED: 4,
    OrderStatus.DELIVERED: 5,
    OrderStatus.COMPLETED: 6,
}

TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

REFUND_PAYMENT_STATUSES = frozenset({"refunded", "partially_refunded"})


def coerce_status(value: str | None, default: OrderStatus = OrderStatus.PENDING) -> OrderStatus:
    if not value:
        return default
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        return default


def status_ordinal(value: str | None) -> int:
    if value is None:
        return -1
    return STATUS_PROGRESSION.get(str(value), -1)
