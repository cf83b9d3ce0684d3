from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from orderbridge.core.normalize import NormalizedOrder

from .migrations import apply_migrations, connect_db
from .records import (
    ExternalOrderRecord,
    InternalOrder,
    InventoryPool,
    PlatformConnection,
    ProductVariant,
    SalesChannel,
)

logger = logging.getLogger(__name__)

_EXTERNAL_ORDER_SELECT = """
    SELECT eo.*, pc.tenant_id, pc.platform, pc.name AS connection_name
    FROM external_orders eo
    JOIN platform_connections pc ON pc.id = eo.connection_id
"""

_VARIANT_SELECT = """
    SELECT v.*, p.tenant_id, p.category_id
    FROM product_variants v
    JOIN products p ON p.id = v.product_id
"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class OrderBridgeRepository:
    def __init__(self, db_path: Path, timeout_sec: float = 30.0):
        self.db_path = db_path
        self.connection = connect_db(db_path, timeout_sec=timeout_sec)
        self._depth = 0
        self._on_commit: list[Callable[[], None]] = []

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> OrderBridgeRepository:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def migrate(self) -> list[str]:
        migrations_dir = Path(__file__).parent / "migrations"
        return apply_migrations(self.connection, migrations_dir)

    # -- transactions -----------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block as one unit of work.

        The outermost block opens ``BEGIN IMMEDIATE``, which takes the database
        write lock up front; nested blocks join it. Any exception rolls the
        whole unit back and is re-raised.
        """
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self.connection.execute("BEGIN IMMEDIATE")
        self._depth = 1
        try:
            yield
        except BaseException:
            self._depth = 0
            self._on_commit.clear()
            if self.connection.in_transaction:
                self.connection.execute("ROLLBACK")
            raise
        self._depth = 0
        self.connection.execute("COMMIT")
        self._run_on_commit()

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` after the current unit of work commits.

        Outside a transaction the callback runs immediately. Callbacks are
        dropped when the unit rolls back; their own failures are logged.
        """
        if self._depth:
            self._on_commit.append(callback)
            return
        self._safe_call(callback)

    def _run_on_commit(self) -> None:
        callbacks, self._on_commit = self._on_commit, []
        for callback in callbacks:
            self._safe_call(callback)

    @staticmethod
    def _safe_call(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:  # noqa: BLE001
            logger.warning("Post-commit callback failed", exc_info=True)

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _to_json(payload: Any) -> str | None:
        if payload is None:
            return None
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _fetch_id(self, query: str, params: tuple[Any, ...]) -> int:
        row = self.connection.execute(query, params).fetchone()
        if row is None:
            raise RuntimeError(f"No id found for query: {query}")
        return int(row["id"])

    def _insert(self, query: str, params: tuple[Any, ...]) -> int:
        with self.transaction():
            cursor = self.connection.execute(query, params)
        return int(cursor.lastrowid)

    def _update(self, query: str, params: tuple[Any, ...]) -> int:
        with self.transaction():
            cursor = self.connection.execute(query, params)
        return cursor.rowcount

    # -- tenants & connections -------------------------------------------

    def upsert_tenant(self, code: str, name: str) -> int:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO tenants (code, name)
                VALUES (?, ?)
                ON CONFLICT(code) DO UPDATE SET name = excluded.name
                """,
                (code, name),
            )
        return self._fetch_id("SELECT id FROM tenants WHERE code = ?", (code,))

    def find_tenant_id(self, code: str) -> int | None:
        row = self.connection.execute("SELECT id FROM tenants WHERE code = ?", (code,)).fetchone()
        return int(row["id"]) if row else None

    def create_connection(self, tenant_id: int, platform: str, name: str | None = None) -> int:
        return self._insert(
            "INSERT INTO platform_connections (tenant_id, platform, name) VALUES (?, ?, ?)",
            (tenant_id, platform, name),
        )

    def get_connection(self, connection_id: int) -> PlatformConnection | None:
        row = self.connection.execute(
            "SELECT * FROM platform_connections WHERE id = ?",
            (connection_id,),
        ).fetchone()
        return PlatformConnection.from_row(row) if row else None

    # -- sales channels ---------------------------------------------------

    def find_channel_by_connection(self, tenant_id: int, connection_id: int) -> SalesChannel | None:
        row = self.connection.execute(
            "SELECT * FROM sales_channels WHERE tenant_id = ? AND connection_id = ? ORDER BY id LIMIT 1",
            (tenant_id, connection_id),
        ).fetchone()
        return SalesChannel.from_row(row) if row else None

    def find_channel_by_type(self, tenant_id: int, channel_type: str) -> SalesChannel | None:
        row = self.connection.execute(
            "SELECT * FROM sales_channels WHERE tenant_id = ? AND type = ? ORDER BY id LIMIT 1",
            (tenant_id, channel_type),
        ).fetchone()
        return SalesChannel.from_row(row) if row else None

    def link_channel(self, channel_id: int, connection_id: int) -> bool:
        updated = self._update(
            "UPDATE sales_channels SET connection_id = ? WHERE id = ? AND connection_id IS NULL",
            (connection_id, channel_id),
        )
        return updated > 0

    def channel_code_exists(self, tenant_id: int, code: str) -> bool:
        row = self.connection.execute(
            "SELECT 1 FROM sales_channels WHERE tenant_id = ? AND code = ?",
            (tenant_id, code),
        ).fetchone()
        return row is not None

    def insert_channel(
        self,
        tenant_id: int,
        name: str,
        code: str,
        channel_type: str,
        is_local: bool,
        connection_id: int | None,
    ) -> int:
        return self._insert(
            """
            INSERT INTO sales_channels (tenant_id, name, code, type, is_local, connection_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (tenant_id, name, code, channel_type, int(is_local), connection_id),
        )

    def list_channels(self, tenant_id: int) -> list[SalesChannel]:
        rows = self.connection.execute(
            "SELECT * FROM sales_channels WHERE tenant_id = ? ORDER BY id",
            (tenant_id,),
        ).fetchall()
        return [SalesChannel.from_row(row) for row in rows]

    # -- customers --------------------------------------------------------

    def find_or_create_customer(
        self,
        tenant_id: int,
        email: str,
        first_name: str | None,
        last_name: str | None,
        phone: str | None,
        external_id: str | None,
    ) -> int:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO customers (tenant_id, email, first_name, last_name, phone, external_id)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(tenant_id, email) DO NOTHING
                """,
                (tenant_id, email, first_name, last_name, phone, external_id),
            )
        return self._fetch_id(
            "SELECT id FROM customers WHERE tenant_id = ? AND email = ?",
            (tenant_id, email),
        )

    # -- catalog & stock --------------------------------------------------

    def upsert_product(self, tenant_id: int, title: str, category_id: int | None = None) -> int:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO products (tenant_id, title, category_id)
                VALUES (?, ?, ?)
                ON CONFLICT(tenant_id, title) DO UPDATE SET
                    category_id = COALESCE(excluded.category_id, products.category_id),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (tenant_id, title, category_id),
            )
        return self._fetch_id(
            "SELECT id FROM products WHERE tenant_id = ? AND title = ?",
            (tenant_id, title),
        )

    def upsert_variant(
        self,
        product_id: int,
        sku: str,
        quantity: int = 0,
        cost: Decimal | None = None,
        wholesale_price: Decimal | None = None,
    ) -> int:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO product_variants (product_id, sku, quantity, cost, wholesale_price)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(product_id, sku) DO UPDATE SET
                    quantity = excluded.quantity,
                    cost = COALESCE(excluded.cost, product_variants.cost),
                    wholesale_price = COALESCE(excluded.wholesale_price, product_variants.wholesale_price),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (product_id, sku, quantity, cost, wholesale_price),
            )
        return self._fetch_id(
            "SELECT id FROM product_variants WHERE product_id = ? AND sku = ?",
            (product_id, sku),
        )

    def get_variant(self, variant_id: int) -> ProductVariant | None:
        row = self.connection.execute(f"{_VARIANT_SELECT} WHERE v.id = ?", (variant_id,)).fetchone()
        return ProductVariant.from_row(row) if row else None

    def find_variant_by_sku(self, tenant_id: int, sku: str) -> ProductVariant | None:
        row = self.connection.execute(
            f"{_VARIANT_SELECT} WHERE p.tenant_id = ? AND v.sku = ? ORDER BY v.id LIMIT 1",
            (tenant_id, sku),
        ).fetchone()
        return ProductVariant.from_row(row) if row else None

    def upsert_warehouse(self, tenant_id: int, name: str) -> int:
        with self.transaction():
            self.connection.execute(
                "INSERT INTO warehouses (tenant_id, name) VALUES (?, ?) ON CONFLICT(tenant_id, name) DO NOTHING",
                (tenant_id, name),
            )
        return self._fetch_id(
            "SELECT id FROM warehouses WHERE tenant_id = ? AND name = ?",
            (tenant_id, name),
        )

    def set_pool(self, variant_id: int, warehouse_id: int, quantity: int, reserved_quantity: int = 0) -> int:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO inventory_pools (variant_id, warehouse_id, quantity, reserved_quantity)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(variant_id, warehouse_id) DO UPDATE SET
                    quantity = excluded.quantity,
                    reserved_quantity = excluded.reserved_quantity,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (variant_id, warehouse_id, quantity, reserved_quantity),
            )
        return self._fetch_id(
            "SELECT id FROM inventory_pools WHERE variant_id = ? AND warehouse_id = ?",
            (variant_id, warehouse_id),
        )

    def list_pools(self, variant_id: int) -> list[InventoryPool]:
        rows = self.connection.execute(
            "SELECT * FROM inventory_pools WHERE variant_id = ? ORDER BY id",
            (variant_id,),
        ).fetchall()
        return [InventoryPool.from_row(row) for row in rows]

    def lock_stocked_pools(self, variant_id: int) -> list[InventoryPool]:
        """Pools of the variant that still hold stock, largest first.

        SQLite has no row locks; the caller's ``BEGIN IMMEDIATE`` unit holds
        the database write lock, which serializes competing depletions until
        it commits.
        """
        if not self.in_transaction:
            raise RuntimeError("lock_stocked_pools must run inside a transaction")
        rows = self.connection.execute(
            """
            SELECT * FROM inventory_pools
            WHERE variant_id = ? AND quantity > 0
            ORDER BY quantity DESC, id ASC
            """,
            (variant_id,),
        ).fetchall()
        return [InventoryPool.from_row(row) for row in rows]

    def decrement_pool(self, pool_id: int, amount: int, sold_at: str) -> bool:
        updated = self._update(
            """
            UPDATE inventory_pools
            SET quantity = quantity - ?, last_sold_at = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND quantity >= ?
            """,
            (amount, sold_at, pool_id, amount),
        )
        return updated == 1

    def decrement_variant(self, variant_id: int, amount: int) -> bool:
        updated = self._update(
            """
            UPDATE product_variants
            SET quantity = quantity - ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND quantity >= ?
            """,
            (amount, variant_id, amount),
        )
        return updated == 1

    def variant_quantity(self, variant_id: int) -> int:
        row = self.connection.execute(
            "SELECT quantity FROM product_variants WHERE id = ?",
            (variant_id,),
        ).fetchone()
        return int(row["quantity"]) if row else 0

    # -- external order ledger -------------------------------------------

    def upsert_external_order(
        self,
        connection_id: int,
        normalized: NormalizedOrder,
        payload_hash: str | None,
    ) -> int:
        customer = normalized.customer
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO external_orders (
                    connection_id, external_order_id, external_order_number,
                    status, fulfillment_status, payment_status,
                    subtotal, shipping_cost, tax, discount, total, currency,
                    customer_json, shipping_address_json, billing_address_json,
                    line_items_json, platform_data_json, payload_hash, ordered_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(connection_id, external_order_id) DO UPDATE SET
                    external_order_number = COALESCE(excluded.external_order_number, external_orders.external_order_number),
                    status = excluded.status,
                    fulfillment_status = excluded.fulfillment_status,
                    payment_status = excluded.payment_status,
                    subtotal = excluded.subtotal,
                    shipping_cost = excluded.shipping_cost,
                    tax = excluded.tax,
                    discount = excluded.discount,
                    total = excluded.total,
                    currency = excluded.currency,
                    customer_json = excluded.customer_json,
                    shipping_address_json = excluded.shipping_address_json,
                    billing_address_json = excluded.billing_address_json,
                    line_items_json = excluded.line_items_json,
                    platform_data_json = excluded.platform_data_json,
                    payload_hash = excluded.payload_hash,
                    ordered_at = COALESCE(excluded.ordered_at, external_orders.ordered_at),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    connection_id,
                    normalized.external_order_id,
                    normalized.external_order_number,
                    str(normalized.status),
                    normalized.fulfillment_status,
                    normalized.payment_status,
                    normalized.subtotal,
                    normalized.shipping_cost,
                    normalized.tax,
                    normalized.discount,
                    normalized.total,
                    normalized.currency,
                    self._to_json(
                        {
                            "email": customer.email,
                            "first_name": customer.first_name,
                            "last_name": customer.last_name,
                            "phone": customer.phone,
                            "external_id": customer.external_id,
                        }
                    ),
                    self._to_json(_address_dict(normalized.shipping_address)),
                    self._to_json(_address_dict(normalized.billing_address)),
                    self._to_json([item.to_dict() for item in normalized.line_items]),
                    self._to_json(normalized.platform_data),
                    payload_hash,
                    normalized.ordered_at.isoformat(),
                ),
            )
        return self._fetch_id(
            "SELECT id FROM external_orders WHERE connection_id = ? AND external_order_id = ?",
            (connection_id, normalized.external_order_id),
        )

    def get_external_order(self, record_id: int) -> ExternalOrderRecord | None:
        row = self.connection.execute(f"{_EXTERNAL_ORDER_SELECT} WHERE eo.id = ?", (record_id,)).fetchone()
        return ExternalOrderRecord.from_row(row) if row else None

    def find_external_order(self, connection_id: int, external_order_id: str) -> ExternalOrderRecord | None:
        row = self.connection.execute(
            f"{_EXTERNAL_ORDER_SELECT} WHERE eo.connection_id = ? AND eo.external_order_id = ?",
            (connection_id, external_order_id),
        ).fetchone()
        return ExternalOrderRecord.from_row(row) if row else None

    def link_external_order(self, record_id: int, order_id: int, synced_at: str) -> bool:
        updated = self._update(
            """
            UPDATE external_orders
            SET order_id = ?, last_synced_at = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND order_id IS NULL
            """,
            (order_id, synced_at, record_id),
        )
        return updated == 1

    def update_external_order_status(
        self,
        record_id: int,
        status: str | None,
        fulfillment_status: str | None,
        payment_status: str | None,
        platform_data: Any,
        synced_at: str,
    ) -> None:
        self._update(
            """
            UPDATE external_orders
            SET status = ?,
                fulfillment_status = ?,
                payment_status = ?,
                platform_data_json = COALESCE(?, platform_data_json),
                last_synced_at = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (status, fulfillment_status, payment_status, self._to_json(platform_data), synced_at, record_id),
        )

    # -- internal orders --------------------------------------------------

    def insert_order(
        self,
        tenant_id: int,
        sales_channel_id: int | None,
        customer_id: int | None,
        status: str,
        sub_total: Decimal,
        shipping_cost: Decimal,
        sales_tax: Decimal,
        discount_cost: Decimal,
        total: Decimal,
        currency: str | None,
        billing_address: dict[str, Any] | None,
        shipping_address: dict[str, Any] | None,
        source_platform: str | None,
        external_marketplace_id: str | None,
        date_of_purchase: str | None,
    ) -> int:
        return self._insert(
            """
            INSERT INTO orders (
                tenant_id, sales_channel_id, customer_id, status,
                sub_total, shipping_cost, sales_tax, discount_cost, total, currency,
                billing_address_json, shipping_address_json,
                source_platform, external_marketplace_id, date_of_purchase
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                tenant_id,
                sales_channel_id,
                customer_id,
                status,
                sub_total,
                shipping_cost,
                sales_tax,
                discount_cost,
                total,
                currency,
                self._to_json(billing_address),
                self._to_json(shipping_address),
                source_platform,
                external_marketplace_id,
                date_of_purchase,
            ),
        )

    def get_order(self, order_id: int) -> InternalOrder | None:
        row = self.connection.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        return InternalOrder.from_row(row) if row else None

    def update_order_status(self, order_id: int, status: str) -> None:
        self._update(
            "UPDATE orders SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (status, order_id),
        )

    def insert_order_item(
        self,
        order_id: int,
        product_id: int | None,
        product_variant_id: int | None,
        category_id: int | None,
        sku: str | None,
        title: str,
        quantity: int,
        price: Decimal,
        cost: Decimal | None,
        wholesale_value: Decimal | None,
        discount: Decimal,
        tax: Decimal,
        external_item_id: str | None,
    ) -> int:
        return self._insert(
            """
            INSERT INTO order_items (
                order_id, product_id, product_variant_id, category_id, sku, title,
                quantity, price, cost, wholesale_value, discount, tax, external_item_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                order_id,
                product_id,
                product_variant_id,
                category_id,
                sku,
                title,
                quantity,
                price,
                cost,
                wholesale_value,
                discount,
                tax,
                external_item_id,
            ),
        )

    def list_order_items(self, order_id: int) -> list[dict[str, Any]]:
        rows = self.connection.execute(
            "SELECT * FROM order_items WHERE order_id = ? ORDER BY id",
            (order_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    def insert_payment(
        self,
        tenant_id: int,
        order_id: int,
        customer_id: int | None,
        payment_method: str,
        status: str,
        amount: Decimal,
        currency: str | None,
        notes: str | None,
        paid_at: str | None,
    ) -> int:
        return self._insert(
            """
            INSERT INTO payments (
                tenant_id, order_id, customer_id, payment_method, status,
                amount, currency, notes, paid_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (tenant_id, order_id, customer_id, payment_method, status, amount, currency, notes, paid_at),
        )

    def list_payments(self, order_id: int) -> list[dict[str, Any]]:
        rows = self.connection.execute(
            "SELECT * FROM payments WHERE order_id = ? ORDER BY id",
            (order_id,),
        ).fetchall()
        return [dict(row) for row in rows]

    # -- side-effect sinks -----------------------------------------------

    def insert_job(self, job_type: str, payload: dict[str, Any], run_after: str) -> int:
        return self._insert(
            "INSERT INTO deferred_jobs (job_type, payload_json, run_after) VALUES (?, ?, ?)",
            (job_type, self._to_json(payload), run_after),
        )

    def fetch_due_jobs(self, now_iso: str) -> list[dict[str, Any]]:
        rows = self.connection.execute(
            """
            SELECT * FROM deferred_jobs
            WHERE status = 'pending' AND run_after <= ?
            ORDER BY run_after ASC, id ASC
            """,
            (now_iso,),
        ).fetchall()
        return [dict(row) for row in rows]

    def fetch_jobs(self, job_type: str | None = None) -> list[dict[str, Any]]:
        if job_type is None:
            rows = self.connection.execute("SELECT * FROM deferred_jobs ORDER BY id").fetchall()
        else:
            rows = self.connection.execute(
                "SELECT * FROM deferred_jobs WHERE job_type = ? ORDER BY id",
                (job_type,),
            ).fetchall()
        return [dict(row) for row in rows]

    def insert_oversell_event(
        self,
        tenant_id: int,
        variant_id: int,
        sku: str | None,
        requested: int,
        unfulfilled: int,
        platform: str | None,
        order_ref: str | None,
    ) -> int:
        return self._insert(
            """
            INSERT INTO oversell_events (tenant_id, variant_id, sku, requested, unfulfilled, platform, order_ref)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (tenant_id, variant_id, sku, requested, unfulfilled, platform, order_ref),
        )

    def fetch_oversell_events(self, tenant_id: int | None = None) -> list[dict[str, Any]]:
        query = "SELECT * FROM oversell_events"
        params: tuple[Any, ...] = ()
        if tenant_id is not None:
            query += " WHERE tenant_id = ?"
            params = (tenant_id,)
        rows = self.connection.execute(f"{query} ORDER BY id", params).fetchall()
        return [dict(row) for row in rows]

    def start_ingest_run(self, correlation_id: str, source: str, started_at: str) -> int:
        with self.transaction():
            self.connection.execute(
                """
                INSERT INTO ingest_runs (correlation_id, source, started_at, status)
                VALUES (?, ?, ?, 'running')
                ON CONFLICT(correlation_id) DO UPDATE SET
                    source = excluded.source,
                    started_at = excluded.started_at,
                    status = 'running',
                    finished_at = NULL,
                    stats_json = NULL,
                    error_text = NULL
                """,
                (correlation_id, source, started_at),
            )
        return self._fetch_id(
            "SELECT id FROM ingest_runs WHERE correlation_id = ?",
            (correlation_id,),
        )

    def finish_ingest_run(
        self,
        correlation_id: str,
        finished_at: str,
        status: str,
        stats: dict[str, Any] | None,
        error_text: str | None,
    ) -> None:
        self._update(
            """
            UPDATE ingest_runs
            SET finished_at = ?, status = ?, stats_json = ?, error_text = ?
            WHERE correlation_id = ?
            """,
            (finished_at, status, self._to_json(stats), error_text, correlation_id),
        )

    def add_audit_log(
        self,
        correlation_id: str | None,
        entity_type: str,
        entity_id: str,
        action: str,
        before_json: dict[str, Any] | None,
        after_json: dict[str, Any] | None,
    ) -> None:
        self._insert(
            """
            INSERT INTO audit_log (correlation_id, entity_type, entity_id, action, before_json, after_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                correlation_id,
                entity_type,
                entity_id,
                action,
                self._to_json(before_json),
                self._to_json(after_json),
            ),
        )

    # -- reporting --------------------------------------------------------

    def fetch_export_rows(self) -> list[dict[str, Any]]:
        rows = self.connection.execute(
            """
            SELECT
                o.id AS order_db_id,
                t.code AS tenant_code,
                sc.code AS sales_channel,
                o.source_platform,
                o.external_marketplace_id,
                eo.external_order_number,
                o.status,
                eo.fulfillment_status,
                eo.payment_status,
                o.sub_total,
                o.shipping_cost,
                o.sales_tax,
                o.discount_cost,
                o.total,
                o.currency,
                o.date_of_purchase,
                eo.last_synced_at,
                (SELECT COUNT(*) FROM order_items oi WHERE oi.order_id = o.id) AS item_count,
                (
                    SELECT COUNT(*) FROM order_items oi
                    WHERE oi.order_id = o.id AND oi.product_variant_id IS NULL
                ) AS unmatched_items
            FROM orders o
            JOIN tenants t ON t.id = o.tenant_id
            LEFT JOIN sales_channels sc ON sc.id = o.sales_channel_id
            LEFT JOIN external_orders eo ON eo.order_id = o.id
            ORDER BY COALESCE(o.date_of_purchase, o.created_at) DESC, o.id DESC
            """
        ).fetchall()
        return [dict(row) for row in rows]

    def duplicate_diagnostics(self) -> dict[str, list[dict[str, Any]]]:
        ledger_dupes = self.connection.execute(
            """
            SELECT connection_id, external_order_id, COUNT(*) AS cnt
            FROM external_orders
            GROUP BY connection_id, external_order_id
            HAVING COUNT(*) > 1
            """
        ).fetchall()

        order_dupes = self.connection.execute(
            """
            SELECT tenant_id, source_platform, external_marketplace_id, COUNT(*) AS cnt
            FROM orders
            WHERE external_marketplace_id IS NOT NULL
            GROUP BY tenant_id, source_platform, external_marketplace_id
            HAVING COUNT(*) > 1
            """
        ).fetchall()

        return {
            "ledger": [dict(row) for row in ledger_dupes],
            "orders": [dict(row) for row in order_dupes],
        }

    def fetch_counts(self) -> dict[str, int]:
        tables = [
            "tenants",
            "platform_connections",
            "sales_channels",
            "external_orders",
            "orders",
            "order_items",
            "payments",
            "inventory_pools",
            "deferred_jobs",
            "oversell_events",
            "ingest_runs",
        ]
        counts: dict[str, int] = {}
        for table in tables:
            row = self.connection.execute(f"SELECT COUNT(*) AS cnt FROM {table}").fetchone()
            counts[table] = int(row["cnt"])
        return counts


def _address_dict(address: Any) -> dict[str, Any] | None:
    if address is None:
        return None
    return {
        "first_name": address.first_name,
        "last_name": address.last_name,
        "address_line1": address.address_line1,
        "address_line2": address.address_line2,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
        "phone": address.phone,
    }
