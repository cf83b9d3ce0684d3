"""WooCommerce REST orders (``order.created`` / ``order.updated`` webhooks).

Money fields are decimal strings. Line discount is ``subtotal - total``.
"""

from __future__ import annotations

from typing import Any

from orderbridge.core.normalize import AddressData, CustomerData, NormalizedLineItem, NormalizedOrder, OrderStatus

from .utils import (
    UNKNOWN_TITLE,
    as_list,
    as_mapping,
    build_address,
    first_present,
    parse_datetime,
    to_decimal,
    to_quantity,
    to_str,
    unwrap,
)

STATUS_MAP = {
    "completed": OrderStatus.COMPLETED,
    "processing": OrderStatus.CONFIRMED,
    "on-hold": OrderStatus.PENDING,
    "pending": OrderStatus.PENDING,
    "cancelled": OrderStatus.CANCELLED,
    "failed": OrderStatus.CANCELLED,
    "refunded": OrderStatus.REFUNDED,
}


def map_status(status: str | None) -> OrderStatus:
    return STATUS_MAP.get((status or "").lower(), OrderStatus.PENDING)


def _payment_status(order: dict[str, Any]) -> str:
    if (to_str(order.get("status")) or "").lower() == "refunded":
        return "refunded"
    return "paid" if to_str(first_present(order.get("date_paid"), order.get("date_paid_gmt"))) else "pending"


def _address(value: Any) -> AddressData | None:
    address = as_mapping(value)
    if not to_str(address.get("address_1")):
        return None
    return build_address(
        first_name=address.get("first_name"),
        last_name=address.get("last_name"),
        address_line1=address.get("address_1"),
        address_line2=address.get("address_2"),
        city=address.get("city"),
        state=address.get("state"),
        postal_code=address.get("postcode"),
        country=address.get("country"),
        phone=address.get("phone"),
    )


def _line_item(value: Any) -> NormalizedLineItem:
    item = as_mapping(value)
    variation_id = item.get("variation_id")
    return NormalizedLineItem(
        external_id=to_str(item.get("id")),
        sku=to_str(item.get("sku")),
        title=to_str(item.get("name")) or UNKNOWN_TITLE,
        quantity=to_quantity(item.get("quantity", 1)),
        price=to_decimal(item.get("price")),
        discount=to_decimal(item.get("subtotal")) - to_decimal(item.get("total")),
        tax=to_decimal(item.get("total_tax")),
        variant_ref=to_str(variation_id) if variation_id else None,
        product_ref=to_str(item.get("product_id")),
    )


def normalize(payload: Any) -> NormalizedOrder:
    order = unwrap(payload, "order")
    billing = as_mapping(order.get("billing"))
    raw_status = to_str(order.get("status")) or "pending"
    order_id = to_str(order.get("id")) or ""

    return NormalizedOrder(
        external_order_id=order_id,
        external_order_number=to_str(order.get("number")) or order_id or None,
        status=map_status(raw_status),
        fulfillment_status=raw_status,
        payment_status=_payment_status(order),
        subtotal=to_decimal(order.get("subtotal")),
        shipping_cost=to_decimal(order.get("shipping_total")),
        tax=to_decimal(order.get("total_tax")),
        discount=to_decimal(order.get("discount_total")),
        total=to_decimal(order.get("total")),
        currency=to_str(order.get("currency")) or "USD",
        customer=CustomerData(
            email=to_str(billing.get("email")),
            first_name=to_str(billing.get("first_name")),
            last_name=to_str(billing.get("last_name")),
            phone=to_str(billing.get("phone")),
            external_id=to_str(order.get("customer_id")),
        ),
        shipping_address=_address(order.get("shipping")),
        billing_address=_address(order.get("billing")),
        ordered_at=parse_datetime(first_present(order.get("date_created_gmt"), order.get("date_created"))),
        line_items=[_line_item(item) for item in as_list(order.get("line_items"))],
        platform_data=order,
    )
