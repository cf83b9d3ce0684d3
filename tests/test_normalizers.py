from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from conftest import load_webhook

from orderbridge.core.normalize import OrderStatus, Platform
from orderbridge.normalizers import NORMALIZERS, generic, get_normalizer, normalize
from orderbridge.normalizers import ebay, shopify, walmart, woocommerce


def test_registry_covers_every_platform() -> None:
    assert set(NORMALIZERS) == set(Platform)


def test_unknown_platform_uses_generic_normalizer() -> None:
    assert get_normalizer("tiktok_shop") is generic.normalize
    assert get_normalizer(None) is generic.normalize
    assert get_normalizer("Shopify") is shopify.normalize


def test_shopify_order() -> None:
    order = normalize(Platform.SHOPIFY, load_webhook("shopify"))

    assert order.external_order_id == "820982911946154508"
    assert order.external_order_number == "1001"
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == "paid"
    assert order.fulfillment_status == "unfulfilled"
    assert order.total == Decimal("100.00")
    assert order.subtotal == Decimal("80.00")
    assert order.shipping_cost == Decimal("12.00")
    assert order.tax == Decimal("8.00")
    assert order.customer.email == "jane@example.com"
    assert order.shipping_address is not None
    assert order.shipping_address.state == "IL"
    assert order.shipping_address.country == "US"
    assert order.ordered_at == datetime(2024, 3, 1, 15, 15, tzinfo=timezone.utc)

    [item] = order.line_items
    assert item.sku == "ABC"
    assert item.quantity == 2
    assert item.price == Decimal("40.00")
    assert item.tax == Decimal("8.00")
    assert item.variant_ref == "39072856"


@pytest.mark.parametrize(
    ("financial_status", "expected"),
    [
        ("paid", OrderStatus.CONFIRMED),
        ("pending", OrderStatus.PENDING),
        ("refunded", OrderStatus.REFUNDED),
        ("partially_refunded", OrderStatus.CONFIRMED),
        ("voided", OrderStatus.CANCELLED),
        ("authorized", OrderStatus.PENDING),
    ],
)
def test_shopify_status_mapping(financial_status: str, expected: OrderStatus) -> None:
    assert shopify.map_status(financial_status) == expected


def test_ebay_rest_order() -> None:
    order = normalize("ebay", {"order": load_webhook("ebay_rest")})

    assert order.external_order_id == "12-34567-89012"
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == "paid"
    assert order.total == Decimal("59.50")
    assert order.shipping_cost == Decimal("5.00")
    assert order.customer.email == "buyer@example.com"
    assert order.shipping_address is not None
    assert order.shipping_address.city == "Austin"
    assert order.shipping_address.phone == "5125550100"

    [item] = order.line_items
    assert item.sku == "EB-1"
    assert item.quantity == 2
    assert item.price == Decimal("25.00")


def test_ebay_trading_order_with_single_transaction() -> None:
    order = normalize(Platform.EBAY, load_webhook("ebay_trading"))

    assert order.external_order_id == "110012345678-2000000001"
    assert order.status == OrderStatus.COMPLETED
    assert order.total == Decimal("30.00")
    assert order.shipping_address is not None
    assert order.shipping_address.city == "Reno"

    [item] = order.line_items
    assert item.sku == "LEG-1"
    assert item.quantity == 3
    assert item.title == "Vintage Lamp"


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("FULFILLED", OrderStatus.COMPLETED),
        ("in_progress", OrderStatus.CONFIRMED),
        ("NOT_STARTED", OrderStatus.PENDING),
        ("Cancelled", OrderStatus.CANCELLED),
        ("SOMETHING_NEW", OrderStatus.PENDING),
    ],
)
def test_ebay_status_mapping_is_case_insensitive(status: str, expected: OrderStatus) -> None:
    assert ebay.map_status(status) == expected


def test_ebay_refund_payment_status() -> None:
    assert ebay.map_payment_status("FULLY_REFUNDED") == "refunded"
    assert ebay.map_payment_status("PARTIALLY_REFUNDED") == "partially_refunded"
    assert ebay.map_payment_status(None) == "pending"


def test_amazon_order() -> None:
    order = normalize(Platform.AMAZON, load_webhook("amazon"))

    assert order.external_order_id == "113-1234567-1234567"
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == "paid"
    assert order.total == Decimal("45.99")
    assert order.customer.email == "abc123@marketplace.amazon.com"
    assert order.line_items[0].sku == "AMZ-1"
    assert order.line_items[0].product_ref == "B00TEST123"


def test_amazon_pending_order_is_not_paid() -> None:
    payload = load_webhook("amazon")
    payload["OrderStatus"] = "Pending"

    order = normalize(Platform.AMAZON, payload)

    assert order.status == OrderStatus.PENDING
    assert order.payment_status == "pending"


def test_etsy_minor_units_are_converted() -> None:
    order = normalize(Platform.ETSY, load_webhook("etsy"))

    assert order.external_order_id == "2559283747"
    assert order.total == Decimal("25.99")
    assert order.subtotal == Decimal("21.99")
    assert order.shipping_cost == Decimal("4")
    assert order.tax == Decimal("0")
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == "paid"
    assert order.ordered_at == datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)
    assert order.line_items[0].price == Decimal("21.99")
    assert order.line_items[0].sku == "MUG-1"


def test_etsy_bare_integer_money_and_unpaid_receipt() -> None:
    order = normalize(
        Platform.ETSY,
        {"receipt": {"receipt_id": 1, "grandtotal": 1050, "is_paid": False, "created_timestamp": "1709290800"}},
    )

    assert order.total == Decimal("10.50")
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == "pending"
    assert order.shipping_address is None
    assert order.ordered_at == datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)


def test_walmart_order() -> None:
    order = normalize(Platform.WALMART, load_webhook("walmart"))

    assert order.external_order_id == "1796277083022"
    assert order.external_order_number == "5281956426648"
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == "paid"
    assert order.total == Decimal("39.96")
    assert order.ordered_at == datetime(2024, 3, 3, 12, 0, tzinfo=timezone.utc)

    [item] = order.line_items
    assert item.sku == "WM-1"
    assert item.quantity == 2
    assert item.price == Decimal("19.98")
    assert item.tax == Decimal("1.2")


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("Shipped", OrderStatus.SHIPPED),
        ("Delivered", OrderStatus.DELIVERED),
        ("Created", OrderStatus.CONFIRMED),
        ("Cancelled", OrderStatus.CANCELLED),
        (None, OrderStatus.PENDING),
    ],
)
def test_walmart_status_mapping(status: str | None, expected: OrderStatus) -> None:
    assert walmart.map_status(status) == expected


def test_woocommerce_order() -> None:
    order = normalize(Platform.WOOCOMMERCE, load_webhook("woocommerce"))

    assert order.external_order_id == "727"
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_status == "paid"
    assert order.total == Decimal("35.35")
    assert order.discount == Decimal("5.00")
    assert order.customer.email == "john.doe@example.com"
    assert order.shipping_address is None
    assert order.billing_address is not None
    assert order.billing_address.postal_code == "94103"

    [item] = order.line_items
    assert item.discount == Decimal("5.00")
    assert item.variant_ref is None


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("completed", OrderStatus.COMPLETED),
        ("processing", OrderStatus.CONFIRMED),
        ("on-hold", OrderStatus.PENDING),
        ("failed", OrderStatus.CANCELLED),
        ("refunded", OrderStatus.REFUNDED),
        ("checkout-draft", OrderStatus.PENDING),
    ],
)
def test_woocommerce_status_mapping(status: str, expected: OrderStatus) -> None:
    assert woocommerce.map_status(status) == expected


def test_woocommerce_refunded_order_payment_status() -> None:
    payload = load_webhook("woocommerce")
    payload["status"] = "refunded"

    order = normalize(Platform.WOOCOMMERCE, payload)

    assert order.status == OrderStatus.REFUNDED
    assert order.payment_status == "refunded"


def test_generic_normalizer_reads_flat_payload() -> None:
    order = normalize(
        "custom_store",
        {
            "id": 77,
            "status": "Shipped",
            "payment_status": "PAID",
            "total": "19.90",
            "email": "flat@example.com",
            "line_items": [{"sku": "G-1", "quantity": "2", "price": "9.95"}],
        },
    )

    assert order.external_order_id == "77"
    assert order.status == OrderStatus.SHIPPED
    assert order.payment_status == "paid"
    assert order.total == Decimal("19.90")
    assert order.customer.email == "flat@example.com"
    assert order.line_items[0].quantity == 2


@pytest.mark.parametrize("platform", list(Platform) + ["unknown"])
def test_empty_payload_never_raises(platform: str) -> None:
    before = datetime.now(timezone.utc) - timedelta(seconds=5)

    order = normalize(platform, {})

    assert order.external_order_id == ""
    assert not order.has_external_id
    assert order.total == Decimal("0")
    assert order.line_items == []
    assert order.ordered_at >= before


def test_non_mapping_payload_is_treated_as_empty() -> None:
    order = normalize(Platform.SHOPIFY, ["not", "an", "order"])
    assert order.external_order_id == ""


def test_malformed_values_fall_back_to_defaults() -> None:
    order = normalize(
        Platform.SHOPIFY,
        {
            "id": 5,
            "financial_status": "mystery",
            "total_price": "not-a-number",
            "created_at": "yesterday-ish",
            "line_items": [
                {"quantity": "many", "price": None},
                {"quantity": 0, "title": ""},
                {"quantity": "1e20"},
            ],
        },
    )

    assert order.status == OrderStatus.PENDING
    assert order.total == Decimal("0")
    assert order.ordered_at.tzinfo is not None
    assert [item.quantity for item in order.line_items] == [1, 1, 1]
    assert {item.title for item in order.line_items} == {"Unknown Item"}
    assert order.line_items[0].price == Decimal("0")
