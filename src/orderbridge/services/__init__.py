from .channels import SalesChannelProvisioner
from .doctor import run_doctor_checks
from .exporter import export_data
from .importer import LedgerConflictError, OrderImporter
from .ingest import IngestionService, IngestResult
from .inventory import DepletionResult, InventoryReconciler
from .jobs import SqliteJobScheduler
from .ledger import ExternalOrderLedger
from .notifier import (
    FanOutOversellNotifier,
    OversellNotice,
    OversellRecorder,
    WebhookOversellNotifier,
    build_oversell_notifier,
)
from .status_sync import StatusSynchronizer, StatusUpdate, is_status_progression, map_dto_status

__all__ = [
    "DepletionResult",
    "ExternalOrderLedger",
    "FanOutOversellNotifier",
    "IngestResult",
    "IngestionService",
    "InventoryReconciler",
    "LedgerConflictError",
    "OrderImporter",
    "OversellNotice",
    "OversellRecorder",
    "SalesChannelProvisioner",
    "SqliteJobScheduler",
    "StatusSynchronizer",
    "StatusUpdate",
    "WebhookOversellNotifier",
    "build_oversell_notifier",
    "export_data",
    "is_status_progression",
    "map_dto_status",
    "run_doctor_checks",
]
