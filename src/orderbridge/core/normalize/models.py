from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from .enums import OrderStatus

ZERO = Decimal("0")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    return Decimal(str(value))


@dataclass(slots=True)
class CustomerData:
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    external_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CustomerData:
        data = data or {}
        return cls(
            email=data.get("email"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            phone=data.get("phone"),
            external_id=data.get("external_id"),
        )


@dataclass(slots=True)
class AddressData:
    first_name: str | None = None
    last_name: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    phone: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AddressData | None:
        if not data:
            return None
        return cls(**{item.name: data.get(item.name) for item in fields(cls)})


@dataclass(slots=True)
class NormalizedLineItem:
    external_id: str | None
    title: str
    sku: str | None = None
    quantity: int = 1
    price: Decimal = ZERO
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    variant_ref: str | None = None
    product_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("price", "discount", "tax"):
            data[key] = str(data[key])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NormalizedLineItem:
        return cls(
            external_id=data.get("external_id"),
            title=data.get("title") or "Unknown Item",
            sku=data.get("sku"),
            quantity=max(1, int(data.get("quantity") or 1)),
            price=_decimal(data.get("price")),
            discount=_decimal(data.get("discount")),
            tax=_decimal(data.get("tax")),
            variant_ref=data.get("variant_ref"),
            product_ref=data.get("product_ref"),
        )


@dataclass(slots=True)
class NormalizedOrder:
    external_order_id: str
    external_order_number: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    fulfillment_status: str | None = None
    payment_status: str | None = None
    subtotal: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    tax: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    currency: str = "USD"
    customer: CustomerData = field(default_factory=CustomerData)
    shipping_address: AddressData | None = None
    billing_address: AddressData | None = None
    ordered_at: datetime = field(default_factory=_utcnow)
    line_items: list[NormalizedLineItem] = field(default_factory=list)
    platform_data: dict[str, Any] = field(default_factory=dict)

    @property
    def has_external_id(self) -> bool:
        return bool(self.external_order_id and self.external_order_id.strip())
