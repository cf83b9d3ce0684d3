from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from orderbridge.config import Settings
from orderbridge.core.db import OrderBridgeRepository, PlatformConnection

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "webhooks"


def load_webhook(name: str) -> dict[str, Any]:
    return json.loads((FIXTURES_DIR / f"{name}.json").read_text(encoding="utf-8"))


def add_variant(
    repository: OrderBridgeRepository,
    tenant_id: int,
    sku: str,
    quantity: int = 0,
    pools: list[tuple[str, int, int]] | None = None,
    title: str | None = None,
) -> int:
    """Create a product variant; ``pools`` holds (warehouse, quantity, reserved) tuples."""
    product_id = repository.upsert_product(tenant_id, title or f"Product {sku}")
    variant_id = repository.upsert_variant(product_id, sku, quantity=quantity)
    for warehouse, pool_quantity, reserved in pools or []:
        warehouse_id = repository.upsert_warehouse(tenant_id, warehouse)
        repository.set_pool(variant_id, warehouse_id, pool_quantity, reserved)
    return variant_id


@pytest.fixture()
def repository(tmp_path: Path):
    db_path = tmp_path / "orderbridge.sqlite3"
    repo = OrderBridgeRepository(db_path)
    repo.migrate()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch) -> Settings:  # noqa: ANN001
    monkeypatch.delenv("ORDERBRIDGE_OVERSELL_WEBHOOK_URL", raising=False)
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("orderbridge-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger


@pytest.fixture()
def tenant_id(repository) -> int:  # noqa: ANN001
    return repository.upsert_tenant("acme", "Acme Inc")


@pytest.fixture()
def connection(repository, tenant_id) -> PlatformConnection:  # noqa: ANN001
    connection_id = repository.create_connection(tenant_id, "shopify", "Acme Shopify")
    return repository.get_connection(connection_id)
