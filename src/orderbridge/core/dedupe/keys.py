from __future__ import annotations

import hashlib
import json
import re
from datetime import datetime
from decimal import Decimal
from typing import Any

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


def _normalize_part(part: Any) -> str:
    if part is None:
        return ""
    if isinstance(part, datetime):
        return part.isoformat()
    if isinstance(part, Decimal):
        return format(part, "f")
    return str(part).strip().lower()


def stable_hash(*parts: Any) -> str:
    payload = "||".join(_normalize_part(part) for part in parts)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def payload_fingerprint(payload: Any) -> str:
    """Order-insensitive digest of a raw platform payload.

    Redeliveries of the same webhook body produce the same fingerprint, so the
    ledger can tell a pure duplicate from an update.
    """
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return stable_hash("payload", canonical)


def build_channel_code(name: str) -> str:
    return _NON_ALNUM.sub("_", name).lower()


def build_suffixed_code(base_code: str, attempt: int) -> str:
    if attempt <= 0:
        return base_code
    return f"{base_code}_{attempt}"
