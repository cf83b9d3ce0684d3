from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import load_webhook

from orderbridge.core.normalize import NormalizedOrder, Platform
from orderbridge.normalizers import normalize
from orderbridge.services import ExternalOrderLedger


def test_upsert_is_keyed_by_connection_and_external_id(repository, connection, test_logger):  # noqa: ANN001
    ledger = ExternalOrderLedger(repository, test_logger)
    payload = load_webhook("shopify")

    first = ledger.upsert(connection, normalize(Platform.SHOPIFY, payload), raw_payload=payload)

    payload["order"]["total_price"] = "90.00"
    payload["order"]["financial_status"] = "partially_refunded"
    second = ledger.upsert(connection, normalize(Platform.SHOPIFY, payload), raw_payload=payload)

    assert first.id == second.id
    assert second.total == Decimal("90.00")
    assert second.payment_status == "partially_refunded"
    assert second.payload_hash != first.payload_hash
    assert repository.fetch_counts()["external_orders"] == 1


def test_upsert_keeps_line_items_and_customer(repository, connection, test_logger):  # noqa: ANN001
    ledger = ExternalOrderLedger(repository, test_logger)
    payload = load_webhook("shopify")

    record = ledger.upsert(connection, normalize(Platform.SHOPIFY, payload), raw_payload=payload)

    assert record.tenant_id == connection.tenant_id
    assert record.platform == "shopify"
    assert record.customer.email == "jane@example.com"
    assert record.shipping_address is not None
    assert record.shipping_address.city == "Springfield"
    assert [(item.sku, item.quantity, item.price) for item in record.line_items] == [("ABC", 2, Decimal("40.00"))]
    assert not record.is_imported()
    assert record.last_synced_at is None


def test_same_external_id_on_other_connection_is_separate(repository, connection, tenant_id, test_logger):  # noqa: ANN001
    ledger = ExternalOrderLedger(repository, test_logger)
    other = repository.get_connection(repository.create_connection(tenant_id, "shopify", "Second Shop"))
    payload = load_webhook("shopify")

    first = ledger.upsert(connection, normalize(Platform.SHOPIFY, payload))
    second = ledger.upsert(other, normalize(Platform.SHOPIFY, payload))

    assert first.id != second.id
    assert ledger.find(other.id, "820982911946154508").id == second.id
    assert ledger.find(other.id, "missing") is None


def test_upsert_never_touches_import_link(repository, connection, tenant_id, test_logger):  # noqa: ANN001
    ledger = ExternalOrderLedger(repository, test_logger)
    payload = load_webhook("shopify")
    record = ledger.upsert(connection, normalize(Platform.SHOPIFY, payload))

    order_id = repository.insert_order(
        tenant_id=tenant_id,
        sales_channel_id=None,
        customer_id=None,
        status="pending",
        sub_total=Decimal("0"),
        shipping_cost=Decimal("0"),
        sales_tax=Decimal("0"),
        discount_cost=Decimal("0"),
        total=Decimal("0"),
        currency="USD",
        billing_address=None,
        shipping_address=None,
        source_platform="shopify",
        external_marketplace_id=record.external_order_id,
        date_of_purchase=None,
    )
    assert repository.link_external_order(record.id, order_id, "2024-03-01T00:00:00+00:00")
    assert not repository.link_external_order(record.id, order_id + 1, "2024-03-02T00:00:00+00:00")

    updated = ledger.upsert(connection, normalize(Platform.SHOPIFY, payload))

    assert updated.order_id == order_id
    assert updated.last_synced_at == "2024-03-01T00:00:00+00:00"


def test_upsert_rejects_missing_external_id(repository, connection, test_logger):  # noqa: ANN001
    ledger = ExternalOrderLedger(repository, test_logger)
    with pytest.raises(ValueError):
        ledger.upsert(connection, NormalizedOrder(external_order_id=""))
