"""Per-platform payload normalizers.

Each adapter module exposes ``normalize(payload) -> NormalizedOrder``; they
share no state and never raise for a mapping payload.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from orderbridge.core.normalize import NormalizedOrder, Platform, resolve_platform

from . import amazon, ebay, etsy, generic, shopify, walmart, woocommerce

Normalizer = Callable[[Any], NormalizedOrder]

NORMALIZERS: dict[Platform, Normalizer] = {
    Platform.SHOPIFY: shopify.normalize,
    Platform.EBAY: ebay.normalize,
    Platform.AMAZON: amazon.normalize,
    Platform.ETSY: etsy.normalize,
    Platform.WALMART: walmart.normalize,
    Platform.WOOCOMMERCE: woocommerce.normalize,
}


def get_normalizer(platform: Platform | str | None) -> Normalizer:
    resolved = resolve_platform(platform)
    if resolved is None:
        return generic.normalize
    return NORMALIZERS[resolved]


def normalize(platform: Platform | str | None, payload: Any) -> NormalizedOrder:
    return get_normalizer(platform)(payload)


__all__ = ["NORMALIZERS", "Normalizer", "get_normalizer", "normalize"]
