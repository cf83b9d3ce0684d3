from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from orderbridge.core.normalize import AddressData, CustomerData, NormalizedLineItem


def to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def _from_json(value: str | None) -> Any:
    if value is None:
        return None
    return json.loads(value)


@dataclass(slots=True)
class PlatformConnection:
    id: int
    tenant_id: int
    platform: str
    name: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> PlatformConnection:
        return cls(
            id=int(row["id"]),
            tenant_id=int(row["tenant_id"]),
            platform=row["platform"],
            name=row["name"],
            is_active=bool(row["is_active"]),
        )


@dataclass(slots=True)
class SalesChannel:
    id: int
    tenant_id: int
    name: str
    code: str
    type: str
    is_local: bool
    connection_id: int | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SalesChannel:
        return cls(
            id=int(row["id"]),
            tenant_id=int(row["tenant_id"]),
            name=row["name"],
            code=row["code"],
            type=row["type"],
            is_local=bool(row["is_local"]),
            connection_id=row["connection_id"],
        )


@dataclass(slots=True)
class ProductVariant:
    id: int
    product_id: int
    tenant_id: int
    sku: str
    quantity: int
    cost: Decimal | None = None
    wholesale_price: Decimal | None = None
    category_id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ProductVariant:
        return cls(
            id=int(row["id"]),
            product_id=int(row["product_id"]),
            tenant_id=int(row["tenant_id"]),
            sku=row["sku"],
            quantity=int(row["quantity"]),
            cost=to_decimal(row["cost"]),
            wholesale_price=to_decimal(row["wholesale_price"]),
            category_id=row["category_id"],
        )


@dataclass(slots=True)
class InventoryPool:
    id: int
    variant_id: int
    warehouse_id: int
    quantity: int
    reserved_quantity: int

    @property
    def available(self) -> int:
        return self.quantity - self.reserved_quantity

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> InventoryPool:
        return cls(
            id=int(row["id"]),
            variant_id=int(row["variant_id"]),
            warehouse_id=int(row["warehouse_id"]),
            quantity=int(row["quantity"]),
            reserved_quantity=int(row["reserved_quantity"] or 0),
        )


@dataclass(slots=True)
class ExternalOrderRecord:
    """Ledger row for one order of one platform connection.

    ``order_id`` doubles as the import flag: it is set exactly once, by the
    first successful import, and never cleared.
    """

    id: int
    connection_id: int
    tenant_id: int
    platform: str
    connection_name: str | None
    external_order_id: str
    external_order_number: str | None
    status: str | None
    fulfillment_status: str | None
    payment_status: str | None
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    currency: str | None
    customer: CustomerData
    shipping_address: AddressData | None
    billing_address: AddressData | None
    line_items: list[NormalizedLineItem] = field(default_factory=list)
    platform_data: Any = None
    payload_hash: str | None = None
    ordered_at: str | None = None
    order_id: int | None = None
    last_synced_at: str | None = None

    def is_imported(self) -> bool:
        return self.order_id is not None

    @property
    def order_ref(self) -> str:
        return self.external_order_number or self.external_order_id

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ExternalOrderRecord:
        line_items = _from_json(row["line_items_json"]) or []
        return cls(
            id=int(row["id"]),
            connection_id=int(row["connection_id"]),
            tenant_id=int(row["tenant_id"]),
            platform=row["platform"],
            connection_name=row["connection_name"],
            external_order_id=row["external_order_id"],
            external_order_number=row["external_order_number"],
            status=row["status"],
            fulfillment_status=row["fulfillment_status"],
            payment_status=row["payment_status"],
            subtotal=to_decimal(row["subtotal"]) or Decimal("0"),
            shipping_cost=to_decimal(row["shipping_cost"]) or Decimal("0"),
            tax=to_decimal(row["tax"]) or Decimal("0"),
            discount=to_decimal(row["discount"]) or Decimal("0"),
            total=to_decimal(row["total"]) or Decimal("0"),
            currency=row["currency"],
            customer=CustomerData.from_dict(_from_json(row["customer_json"])),
            shipping_address=AddressData.from_dict(_from_json(row["shipping_address_json"])),
            billing_address=AddressData.from_dict(_from_json(row["billing_address_json"])),
            line_items=[NormalizedLineItem.from_dict(item) for item in line_items],
            platform_data=_from_json(row["platform_data_json"]),
            payload_hash=row["payload_hash"],
            ordered_at=row["ordered_at"],
            order_id=row["order_id"],
            last_synced_at=row["last_synced_at"],
        )


@dataclass(slots=True)
class InternalOrder:
    id: int
    tenant_id: int
    sales_channel_id: int | None
    customer_id: int | None
    status: str
    sub_total: Decimal
    shipping_cost: Decimal
    sales_tax: Decimal
    discount_cost: Decimal
    total: Decimal
    currency: str | None
    source_platform: str | None
    external_marketplace_id: str | None
    date_of_purchase: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> InternalOrder:
        return cls(
            id=int(row["id"]),
            tenant_id=int(row["tenant_id"]),
            sales_channel_id=row["sales_channel_id"],
            customer_id=row["customer_id"],
            status=row["status"],
            sub_total=to_decimal(row["sub_total"]) or Decimal("0"),
            shipping_cost=to_decimal(row["shipping_cost"]) or Decimal("0"),
            sales_tax=to_decimal(row["sales_tax"]) or Decimal("0"),
            discount_cost=to_decimal(row["discount_cost"]) or Decimal("0"),
            total=to_decimal(row["total"]) or Decimal("0"),
            currency=row["currency"],
            source_platform=row["source_platform"],
            external_marketplace_id=row["external_marketplace_id"],
            date_of_purchase=row["date_of_purchase"],
        )
