from __future__ import annotations

import threading

from orderbridge.core.db import OrderBridgeRepository
from orderbridge.services import SalesChannelProvisioner


def test_creates_channel_named_after_connection(repository, connection, tenant_id, test_logger):  # noqa: ANN001
    provisioner = SalesChannelProvisioner(repository, test_logger)

    channel_id = provisioner.resolve_channel(connection, "shopify", tenant_id)

    [channel] = repository.list_channels(tenant_id)
    assert channel.id == channel_id
    assert channel.name == "Acme Shopify"
    assert channel.code == "acme_shopify"
    assert channel.type == "shopify"
    assert channel.connection_id == connection.id
    assert not channel.is_local


def test_second_resolution_returns_linked_channel(repository, connection, tenant_id, test_logger):  # noqa: ANN001
    provisioner = SalesChannelProvisioner(repository, test_logger)

    first = provisioner.resolve_channel(connection, "shopify", tenant_id)
    second = provisioner.resolve_channel(connection, "shopify", tenant_id)

    assert first == second
    assert len(repository.list_channels(tenant_id)) == 1


def test_unlinked_channel_of_platform_type_is_adopted(repository, connection, tenant_id, test_logger):  # noqa: ANN001
    existing_id = repository.insert_channel(
        tenant_id=tenant_id,
        name="Shopify",
        code="shopify",
        channel_type="shopify",
        is_local=False,
        connection_id=None,
    )
    provisioner = SalesChannelProvisioner(repository, test_logger)

    channel_id = provisioner.resolve_channel(connection, "shopify", tenant_id)

    assert channel_id == existing_id
    [channel] = repository.list_channels(tenant_id)
    assert channel.connection_id == connection.id


def test_channel_name_falls_back_to_platform_label(repository, tenant_id, test_logger):  # noqa: ANN001
    connection = repository.get_connection(repository.create_connection(tenant_id, "woocommerce"))
    provisioner = SalesChannelProvisioner(repository, test_logger)

    provisioner.resolve_channel(connection, "woocommerce", tenant_id)

    [channel] = repository.list_channels(tenant_id)
    assert channel.name == "WooCommerce"
    assert channel.code == "woocommerce"


def test_colliding_names_get_numeric_suffixes(repository, tenant_id, test_logger):  # noqa: ANN001
    repository.insert_channel(
        tenant_id=tenant_id,
        name="Main Store",
        code="main_store",
        channel_type="local",
        is_local=True,
        connection_id=None,
    )
    provisioner = SalesChannelProvisioner(repository, test_logger)

    codes = []
    for platform in ("shopify", "ebay"):
        connection = repository.get_connection(repository.create_connection(tenant_id, platform, "Main Store"))
        channel_id = provisioner.resolve_channel(connection, platform, tenant_id)
        codes.extend(channel.code for channel in repository.list_channels(tenant_id) if channel.id == channel_id)

    assert codes == ["main_store_1", "main_store_2"]


def test_suffix_search_is_not_capped(repository, tenant_id, test_logger):  # noqa: ANN001
    for index in range(30):
        repository.insert_channel(
            tenant_id=tenant_id,
            name="My Store",
            code="my_store" if index == 0 else f"my_store_{index}",
            channel_type=f"custom_{index}",
            is_local=False,
            connection_id=None,
        )
    provisioner = SalesChannelProvisioner(repository, test_logger)
    connection = repository.get_connection(repository.create_connection(tenant_id, "shopify", "My Store"))

    channel_id = provisioner.resolve_channel(connection, "shopify", tenant_id)

    [channel] = [channel for channel in repository.list_channels(tenant_id) if channel.id == channel_id]
    assert channel.code == "my_store_30"
    assert channel.connection_id == connection.id


def test_concurrent_provisioning_creates_one_channel(repository, connection, tenant_id, test_logger):  # noqa: ANN001
    results: list[int] = []
    errors: list[Exception] = []
    barrier = threading.Barrier(4)

    def worker() -> None:
        with OrderBridgeRepository(repository.db_path) as repo:
            barrier.wait()
            try:
                results.append(SalesChannelProvisioner(repo, test_logger).resolve_channel(connection, "shopify", tenant_id))
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(set(results)) == 1
    channels = repository.list_channels(tenant_id)
    assert len(channels) == 1
    assert len({channel.code for channel in channels}) == len(channels)
