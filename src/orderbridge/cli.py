from __future__ import annotations

import json
import subprocess
import sys
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import typer
from dateutil import parser as dt_parser
from rich import print

from orderbridge.config import Settings
from orderbridge.core.db import OrderBridgeRepository
from orderbridge.core.logging import configure_logging, get_logger
from orderbridge.core.normalize import resolve_platform
from orderbridge.services import IngestionService, SqliteJobScheduler, export_data, run_doctor_checks
from orderbridge.sources import PlatformOrderDto

app = typer.Typer(no_args_is_help=True, help="orderbridge: external order ingestion and inventory reconciliation")


def _load_settings(base_dir: Path | None = None) -> Settings:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    return settings


def _open_repository(settings: Settings) -> OrderBridgeRepository:
    repository = OrderBridgeRepository(settings.db_path, timeout_sec=settings.db_timeout_sec)
    repository.migrate()
    return repository


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    try:
        with path.open("r", encoding="utf-8-sig") as fh:
            return json.load(fh)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON in {path}: {exc}") from exc


def _parse_decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise typer.BadParameter(f"Not a number: {value}") from exc


def _parse_moment(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = dt_parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@app.command("init")
def init_command(
    base_dir: Path | None = typer.Option(None, help="Project root (defaults to the current directory)"),
) -> None:
    settings = _load_settings(base_dir=base_dir)
    with OrderBridgeRepository(settings.db_path, timeout_sec=settings.db_timeout_sec) as repository:
        executed = repository.migrate()
    print(f"[green]Initialized[/green]. DB: {settings.db_path}")
    print(f"Migrations: {executed if executed else 'none pending'}")


@app.command("connect")
def connect_command(
    tenant: str = typer.Option(..., help="Tenant code"),
    platform: str = typer.Option(..., help="Platform: shopify, ebay, amazon, etsy, walmart, woocommerce"),
    name: str | None = typer.Option(None, help="Connection name, also used for the sales channel"),
    tenant_name: str | None = typer.Option(None, help="Tenant display name"),
) -> None:
    platform_value = platform.strip().lower()
    if not platform_value:
        raise typer.BadParameter("Platform must not be empty")
    if resolve_platform(platform_value) is None:
        print(f"[yellow]Unknown platform {platform_value}; payloads will use the generic normalizer[/yellow]")

    settings = _load_settings()
    with _open_repository(settings) as repository:
        tenant_id = repository.upsert_tenant(code=tenant, name=tenant_name or tenant)
        connection_id = repository.create_connection(tenant_id, platform_value, name)

    print(f"[green]Connection created[/green]: id={connection_id} tenant={tenant} platform={platform_value}")


@app.command("stock")
def stock_command(
    tenant: str = typer.Option(..., help="Tenant code"),
    sku: str = typer.Option(..., help="Variant SKU"),
    quantity: int = typer.Option(0, min=0, help="Aggregate variant quantity"),
    product: str | None = typer.Option(None, help="Product title (defaults to the SKU)"),
    warehouse: str | None = typer.Option(None, help="Warehouse name for a per-warehouse pool"),
    pool_quantity: int = typer.Option(0, min=0, help="Pool quantity in the warehouse"),
    reserved: int = typer.Option(0, min=0, help="Reserved units in the pool"),
    cost: str | None = typer.Option(None, help="Unit cost"),
    wholesale: str | None = typer.Option(None, help="Wholesale price"),
) -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        tenant_id = repository.find_tenant_id(tenant)
        if tenant_id is None:
            raise typer.BadParameter(f"Unknown tenant: {tenant}")

        product_id = repository.upsert_product(tenant_id, product or sku)
        variant_id = repository.upsert_variant(
            product_id,
            sku,
            quantity=quantity,
            cost=_parse_decimal(cost),
            wholesale_price=_parse_decimal(wholesale),
        )
        print(f"[green]Variant {sku}[/green]: id={variant_id} quantity={quantity}")

        if warehouse:
            warehouse_id = repository.upsert_warehouse(tenant_id, warehouse)
            pool_id = repository.set_pool(variant_id, warehouse_id, pool_quantity, reserved)
            print(f"- pool {pool_id} in {warehouse}: quantity={pool_quantity} reserved={reserved}")


@app.command("ingest")
def ingest_command(
    files: list[Path] = typer.Argument(..., help="Webhook payload JSON files (object or list of objects)"),
    connection: int = typer.Option(..., help="Platform connection id"),
    platform: str | None = typer.Option(None, help="Override the connection platform"),
) -> None:
    deliveries: list[Any] = []
    for path in files:
        data = _read_json(path)
        deliveries.extend(data if isinstance(data, list) else [data])

    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger("orderbridge.ingest", correlation_id, connection_id=connection)

    with _open_repository(settings) as repository:
        platform_connection = repository.get_connection(connection)
        if platform_connection is None:
            raise typer.BadParameter(f"Unknown connection: {connection}")

        service = IngestionService(settings, repository, logger, correlation_id=correlation_id)
        stats = service.ingest_batch(
            deliveries,
            platform_connection,
            correlation_id=correlation_id,
            source=f"webhook:{platform or platform_connection.platform}",
            platform=platform,
        )

    print(f"[green]Ingest finished[/green]. correlation_id={correlation_id}")
    for key, value in stats.items():
        print(f"- {key}: {value}")


@app.command("resync")
def resync_command(
    dto_file: Path = typer.Argument(..., help="Polled order state JSON"),
    record: int = typer.Option(..., help="Ledger row id (external_orders.id)"),
) -> None:
    data = _read_json(dto_file)
    if not isinstance(data, dict):
        raise typer.BadParameter("DTO file must contain a JSON object")

    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id)
    logger = get_logger("orderbridge.resync", correlation_id, record_id=record)

    with _open_repository(settings) as repository:
        service = IngestionService(settings, repository, logger, correlation_id=correlation_id)
        ledger_row = service.ledger.get(record)
        if ledger_row is None:
            raise typer.BadParameter(f"Unknown ledger row: {record}")
        result = service.resync(ledger_row, PlatformOrderDto.from_dict(data))

    status = result.order.status if result.order else "not imported"
    print(f"[green]Re-sync {result.outcome}[/green]: order status={status} changed={result.status_changed}")


@app.command("jobs")
def jobs_command(
    until: str | None = typer.Option(None, help="List jobs due by this moment (default: now)"),
    all_jobs: bool = typer.Option(False, "--all", help="List every job regardless of due time"),
) -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        if all_jobs:
            rows = repository.fetch_jobs()
        else:
            logger = get_logger("orderbridge.jobs", "cli")
            scheduler = SqliteJobScheduler(repository, logger)
            rows = [
                {
                    "id": job.id,
                    "job_type": job.job_type,
                    "run_after": job.run_after,
                    "status": job.status,
                    "payload_json": json.dumps(job.payload),
                }
                for job in scheduler.due_jobs(_parse_moment(until))
            ]

    print(f"Jobs: {len(rows)}")
    for row in rows:
        print(f"- #{row['id']} {row['job_type']} ({row['status']}) run_after={row['run_after']} {row['payload_json']}")


@app.command("oversells")
def oversells_command(
    tenant: str | None = typer.Option(None, help="Tenant code"),
) -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        tenant_id = None
        if tenant:
            tenant_id = repository.find_tenant_id(tenant)
            if tenant_id is None:
                raise typer.BadParameter(f"Unknown tenant: {tenant}")
        events = repository.fetch_oversell_events(tenant_id)

    print(f"Oversell events: {len(events)}")
    for event in events:
        print(
            f"- [yellow]{event['sku'] or event['variant_id']}[/yellow] "
            f"requested={event['requested']} unfulfilled={event['unfulfilled']} "
            f"platform={event['platform']} order={event['order_ref']} at {event['created_at']}"
        )


@app.command("export")
def export_command(
    format: str = typer.Option("xlsx,csv", help="Comma-separated formats: xlsx,csv"),
    out: Path | None = typer.Option(None, help="Export directory"),
) -> None:
    formats = [item.strip().lower() for item in format.split(",") if item.strip()]
    supported = {"xlsx", "csv"}
    unknown = [item for item in formats if item not in supported]
    if unknown:
        raise typer.BadParameter(f"Unsupported formats: {unknown}")

    settings = _load_settings()
    out_dir = (out or settings.exports_dir).resolve()

    with _open_repository(settings) as repository:
        files = export_data(repository=repository, formats=formats, out_dir=out_dir)

    print("[green]Export finished[/green]")
    for file_path in files:
        print(f"- {file_path}")


@app.command("doctor")
def doctor_command() -> None:
    settings = _load_settings()
    checks = run_doctor_checks(settings)

    print("Doctor results:")
    for check in checks:
        status = check["status"].upper()
        print(f"- [{status}] {check['check']}: {check['detail']}")


@app.command("dedupe")
def dedupe_command() -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        diagnostics = repository.duplicate_diagnostics()

    print("Duplicate diagnostics:")
    print(f"- ledger: {len(diagnostics['ledger'])}")
    print(f"- orders: {len(diagnostics['orders'])}")
    for row in diagnostics["orders"]:
        print(f"  {row['source_platform']} {row['external_marketplace_id']}: {row['cnt']} orders")


@app.command("stats")
def stats_command() -> None:
    settings = _load_settings()
    with _open_repository(settings) as repository:
        counts = repository.fetch_counts()

    print("Table counts:")
    for table, count in counts.items():
        print(f"- {table}: {count}")


@app.command("tests")
def tests_command() -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", "-q"], check=False)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)
    print("[green]Tests passed[/green]")


if __name__ == "__main__":
    app()
