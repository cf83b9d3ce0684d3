"""Amazon SP-API orders (``getOrder`` plus its ``OrderItems``).

Amounts are ``{"Amount": "12.34", "CurrencyCode": "USD"}`` maps in decimal
units. Amazon only releases an order for shipment once payment is captured,
so the payment status is derived from ``OrderStatus``.
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
    parse_datetime,
    to_decimal,
    to_quantity,
    to_str,
    unwrap,
)

STATUS_MAP = {
    "Shipped": OrderStatus.SHIPPED,
    "Unshipped": OrderStatus.CONFIRMED,
    "PartiallyShipped": OrderStatus.CONFIRMED,
    "Pending": OrderStatus.PENDING,
    "Canceled": OrderStatus.CANCELLED,
    "Cancelled": OrderStatus.CANCELLED,
}

PAID_STATUSES = {"Shipped", "Unshipped", "PartiallyShipped"}


def map_status(status: str | None) -> OrderStatus:
    return STATUS_MAP.get(status or "", OrderStatus.PENDING)


def _address(value: Any) -> AddressData | None:
    address = as_mapping(value)
    if not address:
        return None
    return build_address(
        first_name=address.get("Name"),
        last_name=None,
        address_line1=address.get("AddressLine1"),
        address_line2=address.get("AddressLine2"),
        city=address.get("City"),
        state=address.get("StateOrRegion"),
        postal_code=address.get("PostalCode"),
        country=address.get("CountryCode"),
        phone=address.get("Phone"),
    )


def _line_item(value: Any) -> NormalizedLineItem:
    item = as_mapping(value)
    return NormalizedLineItem(
        external_id=to_str(item.get("OrderItemId")),
        sku=to_str(item.get("SellerSKU")),
        title=to_str(item.get("Title")) or UNKNOWN_TITLE,
        quantity=to_quantity(item.get("QuantityOrdered", 1)),
        price=to_decimal(dig(item, "ItemPrice", "Amount")),
        discount=to_decimal(dig(item, "PromotionDiscount", "Amount")),
        tax=to_decimal(dig(item, "ItemTax", "Amount")),
        product_ref=to_str(item.get("ASIN")),
    )


def normalize(payload: Any) -> NormalizedOrder:
    order = unwrap(payload, "order")
    order_status = to_str(order.get("OrderStatus")) or "Pending"
    total = to_decimal(dig(order, "OrderTotal", "Amount"))

    return NormalizedOrder(
        external_order_id=to_str(order.get("AmazonOrderId")) or "",
        external_order_number=to_str(order.get("AmazonOrderId")),
        status=map_status(order_status),
        fulfillment_status=to_str(order.get("FulfillmentChannel")) or "MFN",
        payment_status="paid" if order_status in PAID_STATUSES else "pending",
        subtotal=total,
        total=total,
        currency=to_str(dig(order, "OrderTotal", "CurrencyCode")) or "USD",
        customer=CustomerData(
            email=to_str(order.get("BuyerEmail") or dig(order, "BuyerInfo", "BuyerEmail")),
            first_name=to_str(order.get("BuyerName") or dig(order, "BuyerInfo", "BuyerName")),
            external_id=to_str(order.get("BuyerEmail") or dig(order, "BuyerInfo", "BuyerEmail")),
        ),
        shipping_address=_address(order.get("ShippingAddress")),
        billing_address=None,
        ordered_at=parse_datetime(order.get("PurchaseDate")),
        line_items=[_line_item(item) for item in as_list(order.get("OrderItems"))],
        platform_data=order,
    )
