from .enums import (
    REFUND_PAYMENT_STATUSES,
    STATUS_PROGRESSION,
    TERMINAL_STATUSES,
    OrderStatus,
    Platform,
    coerce_status,
    resolve_platform,
    status_ordinal,
)
from .models import AddressData, CustomerData, NormalizedLineItem, NormalizedOrder

__all__ = [
    "AddressData",
    "CustomerData",
    "NormalizedLineItem",
    "NormalizedOrder",
    "OrderStatus",
    "Platform",
    "REFUND_PAYMENT_STATUSES",
    "STATUS_PROGRESSION",
    "TERMINAL_STATUSES",
    "coerce_status",
    "resolve_platform",
    "status_ordinal",
]
