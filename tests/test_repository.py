from __future__ import annotations

import sqlite3
from decimal import Decimal

import pytest
from conftest import add_variant


def test_migrations_are_applied_once(repository) -> None:  # noqa: ANN001
    assert repository.migrate() == []
    applied = repository.connection.execute("SELECT filename FROM schema_migrations").fetchall()
    assert [row["filename"] for row in applied] == ["001_initial.sql"]


def test_upsert_tenant_is_idempotent(repository) -> None:  # noqa: ANN001
    first = repository.upsert_tenant("acme", "Acme")
    second = repository.upsert_tenant("acme", "Acme Renamed")

    assert first == second
    assert repository.find_tenant_id("acme") == first
    assert repository.find_tenant_id("missing") is None


def test_variant_lookup_is_scoped_to_tenant(repository, tenant_id) -> None:  # noqa: ANN001
    other_tenant = repository.upsert_tenant("other", "Other")
    add_variant(repository, other_tenant, "ABC", quantity=9)
    variant_id = add_variant(repository, tenant_id, "ABC", quantity=1)

    variant = repository.find_variant_by_sku(tenant_id, "ABC")

    assert variant is not None
    assert variant.id == variant_id
    assert variant.tenant_id == tenant_id
    assert repository.find_variant_by_sku(tenant_id, "abc") is None


def test_conditional_decrement_refuses_to_go_negative(repository, tenant_id) -> None:  # noqa: ANN001
    variant_id = add_variant(repository, tenant_id, "ABC", quantity=2, pools=[("east", 1, 0)])
    [pool] = repository.list_pools(variant_id)

    assert not repository.decrement_pool(pool.id, 2, "2024-03-01T00:00:00+00:00")
    assert repository.decrement_pool(pool.id, 1, "2024-03-01T00:00:00+00:00")
    assert not repository.decrement_variant(variant_id, 3)
    assert repository.decrement_variant(variant_id, 2)

    assert repository.list_pools(variant_id)[0].quantity == 0
    assert repository.variant_quantity(variant_id) == 0
    last_sold = repository.connection.execute(
        "SELECT last_sold_at FROM inventory_pools WHERE id = ?", (pool.id,)
    ).fetchone()["last_sold_at"]
    assert last_sold == "2024-03-01T00:00:00+00:00"


def test_quantity_check_constraint(repository, tenant_id) -> None:  # noqa: ANN001
    variant_id = add_variant(repository, tenant_id, "ABC", quantity=0)
    with pytest.raises(sqlite3.IntegrityError):
        repository.connection.execute("UPDATE product_variants SET quantity = -1 WHERE id = ?", (variant_id,))


def test_locking_pools_requires_a_transaction(repository, tenant_id) -> None:  # noqa: ANN001
    variant_id = add_variant(repository, tenant_id, "ABC", pools=[("east", 1, 0)])
    with pytest.raises(RuntimeError):
        repository.lock_stocked_pools(variant_id)


def test_transaction_rollback_discards_writes_and_callbacks(repository) -> None:  # noqa: ANN001
    fired: list[str] = []

    with pytest.raises(ValueError):
        with repository.transaction():
            repository.upsert_tenant("temp", "Temp")
            repository.on_commit(lambda: fired.append("commit"))
            raise ValueError("boom")

    assert repository.find_tenant_id("temp") is None
    assert fired == []
    assert not repository.in_transaction


def test_nested_transaction_commits_with_outer_block(repository) -> None:  # noqa: ANN001
    fired: list[str] = []

    with repository.transaction():
        with repository.transaction():
            repository.upsert_tenant("nested", "Nested")
            repository.on_commit(lambda: fired.append("inner"))
        assert fired == []
        repository.on_commit(lambda: 1 / 0)
        repository.on_commit(lambda: fired.append("outer"))

    assert repository.find_tenant_id("nested") is not None
    assert fired == ["inner", "outer"]


def test_callback_outside_transaction_runs_immediately(repository) -> None:  # noqa: ANN001
    fired: list[str] = []
    repository.on_commit(lambda: fired.append("now"))
    assert fired == ["now"]


def test_money_columns_keep_exact_decimals(repository, tenant_id) -> None:  # noqa: ANN001
    product_id = repository.upsert_product(tenant_id, "Precise")
    variant_id = repository.upsert_variant(
        product_id,
        "PREC-1",
        cost=Decimal("12345678901234567.89"),
        wholesale_price=Decimal("0.10"),
    )

    variant = repository.get_variant(variant_id)

    assert variant.cost == Decimal("12345678901234567.89")
    assert str(variant.wholesale_price) == "0.10"
