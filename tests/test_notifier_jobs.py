from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import requests
from conftest import add_variant

from orderbridge.services import (
    FanOutOversellNotifier,
    OversellNotice,
    OversellRecorder,
    SqliteJobScheduler,
    WebhookOversellNotifier,
    build_oversell_notifier,
)


class FakeResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls: list[dict] = []

    def post(self, url, json=None, timeout=None):  # noqa: ANN001
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


class ExplodingNotifier:
    def notify_oversold(self, notice: OversellNotice) -> None:
        raise RuntimeError("smtp down")


@pytest.fixture()
def notice(repository, tenant_id) -> OversellNotice:  # noqa: ANN001
    variant_id = add_variant(repository, tenant_id, "ABC")
    return OversellNotice(
        tenant_id=tenant_id,
        variant_id=variant_id,
        sku="ABC",
        requested=3,
        unfulfilled=2,
        platform="Shopify",
        order_ref="#1001",
    )


def test_recorder_persists_event(repository, notice) -> None:  # noqa: ANN001
    OversellRecorder(repository).notify_oversold(notice)

    [event] = repository.fetch_oversell_events()
    assert event["sku"] == "ABC"
    assert event["unfulfilled"] == 2
    assert event["order_ref"] == "#1001"


def test_webhook_posts_notice_as_json(notice, test_logger) -> None:  # noqa: ANN001
    session = FakeSession()
    notifier = WebhookOversellNotifier("https://hooks.example.com/oversell", 5, session=session, log=test_logger)

    notifier.notify_oversold(notice)

    [call] = session.calls
    assert call["url"] == "https://hooks.example.com/oversell"
    assert call["timeout"] == 5
    assert call["json"]["event"] == "inventory.oversold"
    assert call["json"]["unfulfilled"] == 2
    assert call["json"]["variant_id"] == notice.variant_id


@pytest.mark.parametrize(
    "session",
    [FakeSession(response=FakeResponse(503)), FakeSession(error=requests.ConnectionError("refused"))],
)
def test_webhook_errors_are_swallowed(notice, session, test_logger) -> None:  # noqa: ANN001
    notifier = WebhookOversellNotifier("https://hooks.example.com/oversell", session=session, log=test_logger)
    notifier.notify_oversold(notice)
    assert len(session.calls) == 1


def test_fan_out_continues_after_failure(repository, notice, test_logger) -> None:  # noqa: ANN001
    notifier = FanOutOversellNotifier([ExplodingNotifier(), OversellRecorder(repository)], log=test_logger)

    notifier.notify_oversold(notice)

    assert len(repository.fetch_oversell_events()) == 1


def test_build_notifier_adds_webhook_when_configured(settings, repository) -> None:  # noqa: ANN001
    assert [type(n).__name__ for n in build_oversell_notifier(settings, repository).notifiers] == ["OversellRecorder"]

    settings.oversell_webhook_url = "https://hooks.example.com/oversell"
    notifier = build_oversell_notifier(settings, repository)

    assert [type(n).__name__ for n in notifier.notifiers] == ["OversellRecorder", "WebhookOversellNotifier"]


def test_scheduler_persists_delayed_jobs(repository, test_logger) -> None:  # noqa: ANN001
    scheduler = SqliteJobScheduler(repository, test_logger)

    scheduler.schedule("status_resync", {"external_order_id": 1}, 60)
    scheduler.schedule("inventory_push", {"product_ids": [1, 2]}, 0)

    due_now = scheduler.due_jobs()
    assert [job.job_type for job in due_now] == ["inventory_push"]
    assert due_now[0].payload == {"product_ids": [1, 2]}

    later = scheduler.due_jobs(datetime.now(timezone.utc) + timedelta(minutes=2))
    assert [job.job_type for job in later] == ["inventory_push", "status_resync"]
    assert all(job.status == "pending" for job in later)


def test_scheduler_rejects_unknown_job_type(repository, test_logger) -> None:  # noqa: ANN001
    with pytest.raises(ValueError):
        SqliteJobScheduler(repository, test_logger).schedule("send_email", {}, 0)
