from __future__ import annotations

import logging
from typing import Any

from orderbridge.core.db import ExternalOrderRecord, OrderBridgeRepository, PlatformConnection
from orderbridge.core.dedupe import payload_fingerprint
from orderbridge.core.normalize import NormalizedOrder


class ExternalOrderLedger:
    """Idempotent record of every order seen per platform connection."""

    def __init__(
        self,
        repository: OrderBridgeRepository,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.logger = logger

    def upsert(
        self,
        connection: PlatformConnection,
        normalized: NormalizedOrder,
        raw_payload: Any = None,
    ) -> ExternalOrderRecord:
        if not normalized.has_external_id:
            raise ValueError("external_order_id is required for the ledger")

        fingerprint = payload_fingerprint(raw_payload if raw_payload is not None else normalized.platform_data)
        previous = self.repository.find_external_order(connection.id, normalized.external_order_id)
        record_id = self.repository.upsert_external_order(
            connection_id=connection.id,
            normalized=normalized,
            payload_hash=fingerprint,
        )

        if previous is None:
            self.logger.info(
                "Ledger row %s created for %s order %s",
                record_id,
                connection.platform,
                normalized.external_order_id,
            )
        elif previous.payload_hash == fingerprint:
            self.logger.info("Duplicate delivery of %s order %s", connection.platform, normalized.external_order_id)

        record = self.repository.get_external_order(record_id)
        if record is None:
            raise RuntimeError(f"Ledger row {record_id} disappeared after upsert")
        return record

    def get(self, record_id: int) -> ExternalOrderRecord | None:
        return self.repository.get_external_order(record_id)

    def find(self, connection_id: int, external_order_id: str) -> ExternalOrderRecord | None:
        return self.repository.find_external_order(connection_id, external_order_id)
