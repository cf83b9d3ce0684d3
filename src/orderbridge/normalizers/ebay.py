"""eBay orders.

Handles both the Fulfillment REST shape (``orderId``, ``pricingSummary``,
``lineItems``) and the legacy Trading shape (``OrderID``, ``Total``,
``TransactionArray``). Amounts are decimal values, not minor units.
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
    to_decimal,
    to_quantity,
    to_str,
    unwrap,
)

STATUS_MAP = {
    "FULFILLED": OrderStatus.COMPLETED,
    "COMPLETED": OrderStatus.COMPLETED,
    "IN_PROGRESS": OrderStatus.CONFIRMED,
    "ACTIVE": OrderStatus.CONFIRMED,
    "NOT_STARTED": OrderStatus.PENDING,
    "CANCELLED": OrderStatus.CANCELLED,
}


def map_status(status: str | None) -> OrderStatus:
    return STATUS_MAP.get((status or "").upper(), OrderStatus.PENDING)


PAYMENT_STATUS_MAP = {
    "FULLY_REFUNDED": "refunded",
    "PARTIALLY_REFUNDED": "partially_refunded",
}


def map_payment_status(status: str | None) -> str:
    value = (status or "PENDING").upper()
    return PAYMENT_STATUS_MAP.get(value, value.lower())


def _customer(order: dict[str, Any]) -> CustomerData:
    buyer = as_mapping(order.get("buyer"))
    username = to_str(first_present(buyer.get("username"), order.get("BuyerUserID")))
    return CustomerData(
        email=to_str(first_present(buyer.get("email"), order.get("BuyerUserID"))),
        last_name=username,
        external_id=username,
    )


def _address(value: Any) -> AddressData | None:
    address = as_mapping(value)
    if not address:
        return None
    return build_address(
        first_name=first_present(address.get("fullName"), address.get("Name")),
        last_name=None,
        address_line1=first_present(
            dig(address, "contactAddress", "addressLine1"),
            address.get("addressLine1"),
            address.get("Street1"),
        ),
        address_line2=first_present(
            dig(address, "contactAddress", "addressLine2"),
            address.get("addressLine2"),
            address.get("Street2"),
        ),
        city=first_present(dig(address, "contactAddress", "city"), address.get("city"), address.get("CityName")),
        state=first_present(
            dig(address, "contactAddress", "stateOrProvince"),
            address.get("stateOrProvince"),
            address.get("StateOrProvince"),
        ),
        postal_code=first_present(
            dig(address, "contactAddress", "postalCode"),
            address.get("postalCode"),
            address.get("PostalCode"),
        ),
        country=first_present(
            dig(address, "contactAddress", "countryCode"),
            address.get("countryCode"),
            address.get("Country"),
        ),
        phone=first_present(
            dig(address, "primaryPhone", "phoneNumber"),
            address.get("phoneNumber"),
            address.get("Phone"),
        ),
    )


def _line_item(value: Any) -> NormalizedLineItem:
    item = as_mapping(value)
    legacy_item = as_mapping(item.get("Item"))
    return NormalizedLineItem(
        external_id=to_str(first_present(item.get("lineItemId"), item.get("TransactionID"))),
        sku=to_str(first_present(item.get("sku"), legacy_item.get("SKU"))),
        title=to_str(first_present(item.get("title"), legacy_item.get("Title"))) or UNKNOWN_TITLE,
        quantity=to_quantity(first_present(item.get("quantity"), item.get("QuantityPurchased"), 1)),
        price=to_decimal(first_present(dig(item, "lineItemCost", "value"), item.get("TransactionPrice"))),
        product_ref=to_str(first_present(item.get("legacyItemId"), legacy_item.get("ItemID"))),
    )


def _line_items(order: dict[str, Any]) -> list[NormalizedLineItem]:
    items = order.get("lineItems")
    if items is None:
        items = dig(order, "TransactionArray", "Transaction")
    return [_line_item(item) for item in as_list(items)]


def normalize(payload: Any) -> NormalizedOrder:
    order = unwrap(payload, "order")
    pricing = as_mapping(order.get("pricingSummary"))
    external_id = to_str(first_present(order.get("orderId"), order.get("OrderID"))) or ""

    return NormalizedOrder(
        external_order_id=external_id,
        external_order_number=external_id or None,
        status=map_status(
            to_str(first_present(order.get("orderFulfillmentStatus"), order.get("OrderStatus"))) or "ACTIVE"
        ),
        fulfillment_status=to_str(order.get("orderFulfillmentStatus")) or "NOT_STARTED",
        payment_status=map_payment_status(to_str(order.get("orderPaymentStatus"))),
        subtotal=to_decimal(first_present(dig(pricing, "priceSubtotal", "value"), order.get("Subtotal"))),
        shipping_cost=to_decimal(first_present(dig(pricing, "deliveryCost", "value"), order.get("ShippingCost"))),
        tax=to_decimal(first_present(dig(pricing, "tax", "value"), order.get("Tax"))),
        discount=to_decimal(dig(pricing, "priceDiscount", "value")),
        total=to_decimal(first_present(dig(pricing, "total", "value"), order.get("Total"))),
        currency=to_str(dig(pricing, "total", "currency")) or "USD",
        customer=_customer(order),
        shipping_address=_address(
            first_present(
                dig(order, "fulfillmentStartInstructions", 0, "shippingStep", "shipTo"),
                order.get("ShippingAddress"),
            )
        ),
        billing_address=None,
        ordered_at=parse_datetime(first_present(order.get("creationDate"), order.get("CreatedTime"))),
        line_items=_line_items(order),
        platform_data=order,
    )
