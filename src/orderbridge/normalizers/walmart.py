"""Walmart Marketplace purchase orders.

Walmart only exposes orders that are already paid. Line prices come from the
``PRODUCT`` charge of each order line, in decimal units.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from orderbridge.core.normalize import AddressData, CustomerData, NormalizedLineItem, NormalizedOrder, OrderStatus

from .utils import (
    UNKNOWN_TITLE,
    ZERO,
    as_list,
    as_mapping,
    build_address,
    dig,
    first_present,
    parse_datetime,
    to_decimal,
    to_quantity,
    to_str,
    unwrap,
)

STATUS_MAP = {
    "Shipped": OrderStatus.SHIPPED,
    "Delivered": OrderStatus.DELIVERED,
    "Acknowledged": OrderStatus.CONFIRMED,
    "Created": OrderStatus.CONFIRMED,
    "Cancelled": OrderStatus.CANCELLED,
}


def map_status(status: str | None) -> OrderStatus:
    return STATUS_MAP.get(status or "", OrderStatus.PENDING)


def _order_lines(order: dict[str, Any]) -> list[Any]:
    return as_list(dig(order, "orderLines", "orderLine"))


def _first_line_status(lines: list[Any]) -> str:
    if not lines:
        return "Created"
    statuses = as_list(dig(as_mapping(lines[0]), "orderLineStatuses", "orderLineStatus"))
    if not statuses:
        return "Created"
    return to_str(as_mapping(statuses[0]).get("status")) or "Created"


def _product_charge(line: dict[str, Any]) -> Decimal:
    price = ZERO
    for charge in as_list(dig(line, "charges", "charge")):
        charge = as_mapping(charge)
        if charge.get("chargeType") == "PRODUCT":
            price = to_decimal(dig(charge, "chargeAmount", "amount"))
    return price


def _line_tax(line: dict[str, Any]) -> Decimal:
    tax = ZERO
    for charge in as_list(dig(line, "charges", "charge")):
        tax += to_decimal(dig(as_mapping(charge), "tax", "taxAmount", "amount"))
    return tax


def _line_item(value: Any) -> NormalizedLineItem:
    line = as_mapping(value)
    sku = to_str(dig(line, "item", "sku"))
    return NormalizedLineItem(
        external_id=to_str(line.get("lineNumber")),
        sku=sku,
        title=to_str(dig(line, "item", "productName")) or UNKNOWN_TITLE,
        quantity=to_quantity(dig(line, "orderLineQuantity", "amount", default=1)),
        price=_product_charge(line),
        tax=_line_tax(line),
        product_ref=sku,
    )


def _address(value: Any) -> AddressData | None:
    address = as_mapping(value)
    if not address:
        return None
    return build_address(
        first_name=address.get("name"),
        last_name=None,
        address_line1=address.get("address1"),
        address_line2=address.get("address2"),
        city=address.get("city"),
        state=address.get("state"),
        postal_code=address.get("postalCode"),
        country=address.get("country") or "US",
        phone=None,
    )


def normalize(payload: Any) -> NormalizedOrder:
    order = unwrap(payload, "order")
    shipping = as_mapping(order.get("shippingInfo"))
    lines = _order_lines(order)
    total = to_decimal(first_present(dig(order, "orderTotal", "amount"), order.get("orderTotal")))

    return NormalizedOrder(
        external_order_id=to_str(order.get("purchaseOrderId")) or "",
        external_order_number=to_str(order.get("customerOrderId")),
        status=map_status(_first_line_status(lines)),
        fulfillment_status="pending",
        payment_status="paid",
        subtotal=total,
        total=total,
        currency="USD",
        customer=CustomerData(
            email=to_str(first_present(order.get("customerEmailId"), shipping.get("email"))),
            first_name=to_str(dig(shipping, "postalAddress", "name")),
            phone=to_str(shipping.get("phone")),
            external_id=to_str(order.get("customerOrderId")),
        ),
        shipping_address=_address(shipping.get("postalAddress")),
        billing_address=None,
        ordered_at=parse_datetime(order.get("orderDate")),
        line_items=[_line_item(line) for line in lines],
        platform_data=order,
    )
