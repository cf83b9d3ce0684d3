from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as dt_parser

from orderbridge.core.normalize import AddressData

ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNKNOWN_TITLE = "Unknown Item"
EPOCH_MS_THRESHOLD = 100_000_000_000
SQLITE_MAX_INTEGER = 2**63 - 1


def as_mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def as_list(value: Any) -> list[Any]:
    # XML-derived payloads (eBay Trading, Walmart) collapse single-element
    # arrays into a bare object.
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        return [value]
    return []


def dig(data: Any, *path: str | int, default: Any = None) -> Any:
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, Mapping) or key not in current:
                return default
            current = current[key]
    return default if current is None else current


def first_present(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def unwrap(payload: Any, envelope: str) -> dict[str, Any]:
    data = as_mapping(payload)
    inner = data.get(envelope)
    return as_mapping(inner) if isinstance(inner, Mapping) else data


def to_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value
    text = str(value).strip().replace(",", "")
    if not text:
        return default
    try:
        result = Decimal(text)
    except InvalidOperation:
        return default
    return result if result.is_finite() else default


def minor_to_decimal(value: Any) -> Decimal:
    """Convert a minor-unit money field (cents) to a decimal amount.

    Accepts a bare integer or an ``{"amount": ..., "divisor": ...}`` map; the
    divisor defaults to 100.
    """
    if isinstance(value, Mapping):
        amount = to_decimal(value.get("amount"))
        divisor = to_decimal(value.get("divisor"), default=HUNDRED)
        if divisor == ZERO:
            divisor = HUNDRED
        return amount / divisor
    return to_decimal(value) / HUNDRED


def to_quantity(value: Any) -> int:
    try:
        quantity = int(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError, OverflowError):
        return 1
    if quantity > SQLITE_MAX_INTEGER:
        return 1
    return max(1, quantity)


def sum_decimal(values: list[Any]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Walmart sends epoch milliseconds, Etsy epoch seconds.
        seconds = value / 1000 if abs(value) >= EPOCH_MS_THRESHOLD else value
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return datetime.now(timezone.utc)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = dt_parser.parse(value)
        except (ValueError, OverflowError):
            return datetime.now(timezone.utc)
    else:
        return datetime.now(timezone.utc)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def build_address(**fields: Any) -> AddressData | None:
    values = {key: to_str(value) for key, value in fields.items()}
    if not any(values.values()):
        return None
    return AddressData(**values)
