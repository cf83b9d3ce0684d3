from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class PlatformOrderDto:
    """Order state as reported by a polling connector."""

    external_id: str
    status: str | None = None
    fulfillment_status: str | None = None
    payment_status: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlatformOrderDto:
        metadata = data.get("metadata")
        return cls(
            external_id=str(data.get("external_id") or data.get("id") or ""),
            status=data.get("status"),
            fulfillment_status=data.get("fulfillment_status"),
            payment_status=data.get("payment_status"),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )
