"""Best-effort mapping for platforms without a dedicated adapter.

Reads the flat keys most storefront exports share (``id``, ``status``,
``total``, ``line_items``). Status values are matched against the canonical
vocabulary and fall back to ``pending``.
"""

from __future__ import annotations

from typing import Any

from orderbridge.core.normalize import AddressData, CustomerData, NormalizedLineItem, NormalizedOrder, coerce_status

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


def _address(value: Any) -> AddressData | None:
    address = as_mapping(value)
    if not address:
        return None
    return build_address(
        first_name=address.get("first_name"),
        last_name=address.get("last_name"),
        address_line1=first_present(address.get("address_line1"), address.get("address1")),
        address_line2=first_present(address.get("address_line2"), address.get("address2")),
        city=address.get("city"),
        state=address.get("state"),
        postal_code=first_present(address.get("postal_code"), address.get("zip")),
        country=address.get("country"),
        phone=address.get("phone"),
    )


def _line_item(value: Any) -> NormalizedLineItem:
    item = as_mapping(value)
    return NormalizedLineItem(
        external_id=to_str(item.get("id")),
        sku=to_str(item.get("sku")),
        title=to_str(first_present(item.get("title"), item.get("name"))) or UNKNOWN_TITLE,
        quantity=to_quantity(item.get("quantity", 1)),
        price=to_decimal(item.get("price")),
        discount=to_decimal(item.get("discount")),
        tax=to_decimal(item.get("tax")),
    )


def normalize(payload: Any) -> NormalizedOrder:
    order = unwrap(payload, "order")
    customer = as_mapping(order.get("customer"))
    order_id = to_str(first_present(order.get("id"), order.get("order_id"))) or ""

    return NormalizedOrder(
        external_order_id=order_id,
        external_order_number=to_str(first_present(order.get("number"), order.get("order_number"))) or order_id or None,
        status=coerce_status(to_str(order.get("status"))),
        fulfillment_status=to_str(order.get("fulfillment_status")),
        payment_status=(to_str(order.get("payment_status")) or "pending").lower(),
        subtotal=to_decimal(order.get("subtotal")),
        shipping_cost=to_decimal(first_present(order.get("shipping_cost"), order.get("shipping"))),
        tax=to_decimal(order.get("tax")),
        discount=to_decimal(order.get("discount")),
        total=to_decimal(order.get("total")),
        currency=to_str(order.get("currency")) or "USD",
        customer=CustomerData(
            email=to_str(first_present(customer.get("email"), order.get("email"))),
            first_name=to_str(customer.get("first_name")),
            last_name=to_str(customer.get("last_name")),
            phone=to_str(customer.get("phone")),
            external_id=to_str(customer.get("id")),
        ),
        shipping_address=_address(order.get("shipping_address")),
        billing_address=_address(order.get("billing_address")),
        ordered_at=parse_datetime(first_present(order.get("ordered_at"), order.get("created_at"))),
        line_items=[_line_item(item) for item in as_list(order.get("line_items"))],
        platform_data=order,
    )
