from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from orderbridge.config import Settings
from orderbridge.core.db import OrderBridgeRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class OversellNotice:
    tenant_id: int
    variant_id: int
    sku: str | None
    requested: int
    unfulfilled: int
    platform: str | None
    order_ref: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class OversellNotifier(Protocol):
    def notify_oversold(self, notice: OversellNotice) -> None: ...


class OversellRecorder:
    """Keeps every oversell in ``oversell_events`` for later reconciliation."""

    def __init__(self, repository: OrderBridgeRepository):
        self.repository = repository

    def notify_oversold(self, notice: OversellNotice) -> None:
        self.repository.insert_oversell_event(
            tenant_id=notice.tenant_id,
            variant_id=notice.variant_id,
            sku=notice.sku,
            requested=notice.requested,
            unfulfilled=notice.unfulfilled,
            platform=notice.platform,
            order_ref=notice.order_ref,
        )


class WebhookOversellNotifier:
    def __init__(
        self,
        url: str,
        timeout_sec: float = 10.0,
        session: requests.Session | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.url = url
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.logger = log or logger

    def notify_oversold(self, notice: OversellNotice) -> None:
        body = {
            "event": "inventory.oversold",
            "sent_at": datetime.now(timezone.utc).isoformat(),
            **notice.to_dict(),
        }
        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout_sec)
            response.raise_for_status()
        except requests.RequestException as exc:
            self.logger.warning("Oversell webhook failed for variant %s: %s", notice.variant_id, exc)


class FanOutOversellNotifier:
    def __init__(
        self,
        notifiers: list[OversellNotifier],
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.notifiers = list(notifiers)
        self.logger = log or logger

    def notify_oversold(self, notice: OversellNotice) -> None:
        for notifier in self.notifiers:
            try:
                notifier.notify_oversold(notice)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(
                    "Oversell notifier %s failed: %s",
                    notifier.__class__.__name__,
                    exc,
                )


def build_oversell_notifier(
    settings: Settings,
    repository: OrderBridgeRepository,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> OversellNotifier:
    notifiers: list[OversellNotifier] = [OversellRecorder(repository)]
    if settings.oversell_webhook_url:
        notifiers.append(
            WebhookOversellNotifier(
                url=settings.oversell_webhook_url,
                timeout_sec=settings.notify_timeout_sec,
                log=log,
            )
        )
    return FanOutOversellNotifier(notifiers, log=log)
