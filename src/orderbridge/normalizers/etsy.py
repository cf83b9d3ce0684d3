"""Etsy shop receipts.

Etsy reports every money field in minor units, either as a bare integer or as
``{"amount": 1999, "divisor": 100, "currency_code": "USD"}``. All of them are
divided by their divisor (100 when absent) before normalization.
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
    minor_to_decimal,
    parse_datetime,
    to_quantity,
    to_str,
    unwrap,
)


def _address(receipt: dict[str, Any]) -> AddressData | None:
    if not to_str(receipt.get("name")):
        return None
    return build_address(
        first_name=receipt.get("name"),
        last_name=None,
        address_line1=receipt.get("first_line"),
        address_line2=receipt.get("second_line"),
        city=receipt.get("city"),
        state=receipt.get("state"),
        postal_code=receipt.get("zip"),
        country=receipt.get("country_iso"),
        phone=None,
    )


def _sku(item: dict[str, Any]) -> Any:
    return item.get("sku") or dig(item, "product_data", "sku")


def _line_item(value: Any) -> NormalizedLineItem:
    item = as_mapping(value)
    return NormalizedLineItem(
        external_id=to_str(item.get("transaction_id")),
        sku=to_str(_sku(item)),
        title=to_str(item.get("title")) or UNKNOWN_TITLE,
        quantity=to_quantity(item.get("quantity", 1)),
        price=minor_to_decimal(item.get("price")),
        product_ref=to_str(item.get("listing_id")),
        variant_ref=to_str(item.get("product_id")),
    )


def _created_at(receipt: dict[str, Any]) -> Any:
    value = receipt.get("created_timestamp", receipt.get("create_timestamp"))
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


def normalize(payload: Any) -> NormalizedOrder:
    receipt = unwrap(payload, "receipt")
    is_paid = bool(receipt.get("is_paid"))
    is_shipped = bool(receipt.get("is_shipped"))
    receipt_id = to_str(receipt.get("receipt_id")) or ""

    return NormalizedOrder(
        external_order_id=receipt_id,
        external_order_number=receipt_id or None,
        status=OrderStatus.CONFIRMED if is_paid else OrderStatus.PENDING,
        fulfillment_status="shipped" if is_shipped else "pending",
        payment_status="paid" if is_paid else "pending",
        subtotal=minor_to_decimal(receipt.get("subtotal")),
        shipping_cost=minor_to_decimal(receipt.get("total_shipping_cost")),
        tax=minor_to_decimal(receipt.get("total_tax_cost")),
        discount=minor_to_decimal(receipt.get("discount_amt")),
        total=minor_to_decimal(receipt.get("grandtotal")),
        currency=to_str(dig(receipt, "grandtotal", "currency_code")) or "USD",
        customer=CustomerData(
            email=to_str(receipt.get("buyer_email")),
            first_name=to_str(receipt.get("name")),
            external_id=to_str(receipt.get("buyer_user_id")),
        ),
        shipping_address=_address(receipt),
        billing_address=None,
        ordered_at=parse_datetime(_created_at(receipt)),
        line_items=[_line_item(item) for item in as_list(receipt.get("transactions"))],
        platform_data=receipt,
    )
