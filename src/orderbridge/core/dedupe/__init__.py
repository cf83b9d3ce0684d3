from .keys import (
    build_channel_code,
    build_suffixed_code,
    payload_fingerprint,
    stable_hash,
)

__all__ = [
    "stable_hash",
    "payload_fingerprint",
    "build_channel_code",
    "build_suffixed_code",
]
