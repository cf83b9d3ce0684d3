from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from orderbridge.config import Settings
from orderbridge.core.db import ExternalOrderRecord, InternalOrder, OrderBridgeRepository, PlatformConnection
from orderbridge.core.normalize import Platform
from orderbridge.normalizers import normalize
from orderbridge.sources.models import PlatformOrderDto

from .importer import OrderImporter
from .jobs import JobScheduler, SqliteJobScheduler
from .ledger import ExternalOrderLedger
from .notifier import OversellNotifier
from .status_sync import StatusSynchronizer, StatusUpdate

IMPORTED = "imported"
SYNCED = "synced"
SKIPPED = "skipped"


@dataclass(slots=True)
class IngestResult:
    outcome: str
    record: ExternalOrderRecord | None = None
    order: InternalOrder | None = None
    status_changed: bool = False
    reason: str | None = None


class IngestionService:
    """Entry point for webhook deliveries and scheduled re-syncs.

    A delivery is normalized, recorded in the ledger, then either imported
    (first time) or passed to the forward-only status synchronizer.
    """

    def __init__(
        self,
        settings: Settings,
        repository: OrderBridgeRepository,
        logger: logging.Logger | logging.LoggerAdapter,
        *,
        correlation_id: str | None = None,
        scheduler: JobScheduler | None = None,
        notifier: OversellNotifier | None = None,
    ):
        self.settings = settings
        self.repository = repository
        self.logger = logger
        self.scheduler = scheduler or SqliteJobScheduler(repository, logger)
        self.ledger = ExternalOrderLedger(repository, logger)
        self.importer = OrderImporter(
            settings,
            repository,
            logger,
            scheduler=self.scheduler,
            notifier=notifier,
            correlation_id=correlation_id,
        )
        self.status_sync = StatusSynchronizer(
            repository,
            logger,
            scheduler=self.scheduler,
            returns_delay_sec=settings.returns_resync_delay_sec,
            correlation_id=correlation_id,
        )

    def ingest_webhook(
        self,
        payload: Any,
        connection: PlatformConnection,
        platform: Platform | str | None = None,
    ) -> IngestResult:
        platform_value = platform or connection.platform
        normalized = normalize(platform_value, payload)
        if not normalized.has_external_id:
            self.logger.warning("Skipped %s delivery without an external order id", platform_value)
            return IngestResult(outcome=SKIPPED, reason="missing external order id")

        record = self.ledger.upsert(connection, normalized, raw_payload=payload)

        if record.is_imported():
            changed = self.status_sync.sync(record, StatusUpdate.from_normalized(normalized))
            return IngestResult(
                outcome=SYNCED,
                record=self.ledger.get(record.id),
                order=self.repository.get_order(record.order_id),
                status_changed=changed,
            )

        order = self.importer.import_order(record)
        return IngestResult(outcome=IMPORTED, record=self.ledger.get(record.id), order=order)

    def resync(self, record: ExternalOrderRecord, dto: PlatformOrderDto) -> IngestResult:
        if dto.external_id and dto.external_id != record.external_order_id:
            self.logger.warning(
                "Skipped re-sync of ledger row %s: DTO is for order %s", record.id, dto.external_id
            )
            return IngestResult(outcome=SKIPPED, record=record, reason="external id mismatch")

        changed = self.status_sync.sync_from_dto(record, dto)
        refreshed = self.ledger.get(record.id)
        order = self.repository.get_order(refreshed.order_id) if refreshed and refreshed.order_id else None
        return IngestResult(outcome=SYNCED, record=refreshed, order=order, status_changed=changed)

    def ingest_batch(
        self,
        deliveries: Iterable[Any],
        connection: PlatformConnection,
        *,
        correlation_id: str,
        source: str,
        platform: Platform | str | None = None,
    ) -> dict[str, Any]:
        started_at = datetime.now(timezone.utc)
        self.repository.start_ingest_run(correlation_id=correlation_id, source=source, started_at=started_at.isoformat())

        stats: dict[str, Any] = {
            "received": 0,
            "imported": 0,
            "synced": 0,
            "skipped": 0,
            "errors": 0,
        }

        try:
            for payload in deliveries:
                stats["received"] += 1
                try:
                    result = self.ingest_webhook(payload, connection, platform)
                    stats[result.outcome] += 1
                except Exception as exc:  # noqa: BLE001
                    stats["errors"] += 1
                    self.logger.error("Delivery processing failed: %s", exc)

            self.repository.finish_ingest_run(
                correlation_id=correlation_id,
                finished_at=datetime.now(timezone.utc).isoformat(),
                status="success" if stats["errors"] == 0 else "completed_with_errors",
                stats=stats,
                error_text=None,
            )
            return stats

        except Exception as exc:  # noqa: BLE001
            stats["errors"] += 1
            self.repository.finish_ingest_run(
                correlation_id=correlation_id,
                finished_at=datetime.now(timezone.utc).isoformat(),
                status="failed",
                stats=stats,
                error_text=str(exc),
            )
            raise
