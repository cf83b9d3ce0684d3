"""Shopify order webhooks (``orders/create``, ``orders/updated``).

Money fields arrive as decimal strings in the shop currency; no minor-unit
conversion is needed.
"""

from __future__ import annotations

from typing import Any

from orderbridge.core.normalize import AddressData, CustomerData, NormalizedLineItem, NormalizedOrder, OrderStatus

from .utils import (
    UNKNOWN_TITLE,
    as_list,
    as_mapping,
    build_address,
    dig,
    first_present,
    parse_datetime,
    sum_decimal,
    to_decimal,
    to_quantity,
    to_str,
    unwrap,
)

STATUS_MAP = {
    "paid": OrderStatus.CONFIRMED,
    "pending": OrderStatus.PENDING,
    "refunded": OrderStatus.REFUNDED,
    "partially_refunded": OrderStatus.CONFIRMED,
    "voided": OrderStatus.CANCELLED,
}


def map_status(financial_status: str | None) -> OrderStatus:
    return STATUS_MAP.get((financial_status or "").lower(), OrderStatus.PENDING)


def _customer(order: dict[str, Any]) -> CustomerData:
    customer = as_mapping(order.get("customer"))
    return CustomerData(
        email=to_str(first_present(customer.get("email"), order.get("email"))),
        first_name=to_str(customer.get("first_name")),
        last_name=to_str(customer.get("last_name")),
        phone=to_str(first_present(customer.get("phone"), order.get("phone"))),
        external_id=to_str(customer.get("id")),
    )


def _address(value: Any) -> AddressData | None:
    address = as_mapping(value)
    if not address:
        return None
    return build_address(
        first_name=address.get("first_name"),
        last_name=address.get("last_name"),
        address_line1=address.get("address1"),
        address_line2=address.get("address2"),
        city=address.get("city"),
        state=first_present(address.get("province_code"), address.get("province")),
        postal_code=address.get("zip"),
        country=address.get("country_code"),
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
        discount=to_decimal(item.get("total_discount")),
        tax=sum_decimal([as_mapping(line).get("price") for line in as_list(item.get("tax_lines"))]),
        variant_ref=to_str(item.get("variant_id")),
        product_ref=to_str(item.get("product_id")),
    )


def normalize(payload: Any) -> NormalizedOrder:
    order = unwrap(payload, "order")
    financial_status = to_str(order.get("financial_status")) or "pending"

    return NormalizedOrder(
        external_order_id=to_str(order.get("id")) or "",
        external_order_number=to_str(first_present(order.get("order_number"), order.get("name"))),
        status=map_status(financial_status),
        fulfillment_status=to_str(order.get("fulfillment_status")) or "unfulfilled",
        payment_status=financial_status,
        subtotal=to_decimal(order.get("subtotal_price")),
        shipping_cost=to_decimal(dig(order, "total_shipping_price_set", "shop_money", "amount")),
        tax=to_decimal(order.get("total_tax")),
        discount=to_decimal(order.get("total_discounts")),
        total=to_decimal(order.get("total_price")),
        currency=to_str(order.get("currency")) or "USD",
        customer=_customer(order),
        shipping_address=_address(order.get("shipping_address")),
        billing_address=_address(order.get("billing_address")),
        ordered_at=parse_datetime(order.get("created_at")),
        line_items=[_line_item(item) for item in as_list(order.get("line_items"))],
        platform_data=order,
    )
