from __future__ import annotations

import itertools
import logging
import sqlite3

from orderbridge.core.db import OrderBridgeRepository, PlatformConnection
from orderbridge.core.dedupe import build_channel_code, build_suffixed_code
from orderbridge.core.normalize import Platform, resolve_platform

MAX_INSERT_CONFLICTS = 25
FALLBACK_CODE = "channel"


class ChannelProvisioningError(RuntimeError):
    pass


class SalesChannelProvisioner:
    """Finds or creates the sales channel that external orders are attributed to."""

    def __init__(
        self,
        repository: OrderBridgeRepository,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.logger = logger

    @staticmethod
    def _channel_name(connection: PlatformConnection, platform: Platform | str) -> str:
        if connection.name and connection.name.strip():
            return connection.name.strip()
        resolved = resolve_platform(platform)
        if resolved is not None:
            return resolved.label
        return str(platform).strip().capitalize() or FALLBACK_CODE.capitalize()

    def resolve_channel(
        self,
        connection: PlatformConnection,
        platform: Platform | str,
        tenant_id: int,
    ) -> int:
        channel_type = str(platform).strip().lower()

        with self.repository.transaction():
            linked = self.repository.find_channel_by_connection(tenant_id, connection.id)
            if linked is not None:
                return linked.id

            by_type = self.repository.find_channel_by_type(tenant_id, channel_type)
            if by_type is not None:
                if by_type.connection_id is None and self.repository.link_channel(by_type.id, connection.id):
                    self.logger.info(
                        "Linked sales channel %s to connection %s", by_type.code, connection.id
                    )
                return by_type.id

            return self._create_channel(connection, channel_type, tenant_id)

    def _create_channel(self, connection: PlatformConnection, channel_type: str, tenant_id: int) -> int:
        name = self._channel_name(connection, channel_type)
        base_code = build_channel_code(name).strip("_") or FALLBACK_CODE

        conflicts = 0
        for attempt in itertools.count():
            code = build_suffixed_code(base_code, attempt)
            if self.repository.channel_code_exists(tenant_id, code):
                continue
            try:
                channel_id = self.repository.insert_channel(
                    tenant_id=tenant_id,
                    name=name,
                    code=code,
                    channel_type=channel_type,
                    is_local=False,
                    connection_id=connection.id,
                )
            except sqlite3.IntegrityError as exc:
                # Another writer took the code first; it may have provisioned our channel.
                winner = self.repository.find_channel_by_connection(tenant_id, connection.id)
                if winner is not None:
                    return winner.id
                conflicts += 1
                if conflicts >= MAX_INSERT_CONFLICTS:
                    raise ChannelProvisioningError(
                        f"Could not allocate a sales channel code for {name!r} after {conflicts} conflicting inserts"
                    ) from exc
                continue
            self.logger.info("Created sales channel %s (%s) for tenant %s", code, channel_type, tenant_id)
            return channel_id
