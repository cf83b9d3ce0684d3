from .migrations import apply_migrations, connect_db
from .records import (
    ExternalOrderRecord,
    InternalOrder,
    InventoryPool,
    PlatformConnection,
    ProductVariant,
    SalesChannel,
)
from .repository import OrderBridgeRepository, utc_now_iso

__all__ = [
    "connect_db",
    "apply_migrations",
    "OrderBridgeRepository",
    "utc_now_iso",
    "ExternalOrderRecord",
    "InternalOrder",
    "InventoryPool",
    "PlatformConnection",
    "ProductVariant",
    "SalesChannel",
]
