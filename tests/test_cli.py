from __future__ import annotations

import logging
from pathlib import Path

import pytest
from conftest import FIXTURES_DIR
from typer.testing import CliRunner

from orderbridge.cli import app

runner = CliRunner()


@pytest.fixture()
def home(monkeypatch, tmp_path: Path) -> Path:  # noqa: ANN001
    for name in (
        "ORDERBRIDGE_DATA_DIR",
        "ORDERBRIDGE_DB_PATH",
        "ORDERBRIDGE_LOG_DIR",
        "ORDERBRIDGE_EXPORT_DIR",
        "ORDERBRIDGE_OVERSELL_WEBHOOK_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ORDERBRIDGE_HOME", str(tmp_path))

    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield tmp_path
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _invoke(*args: str):  # noqa: ANN202
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


def test_ingest_flow_from_command_line(home: Path) -> None:
    assert "Initialized" in _invoke("init").output
    assert "id=1" in _invoke("connect", "--tenant", "acme", "--platform", "shopify", "--name", "Acme Shopify").output
    _invoke("stock", "--tenant", "acme", "--sku", "ABC", "--quantity", "1")

    payload = str(FIXTURES_DIR / "shopify.json")
    first = _invoke("ingest", payload, "--connection", "1")
    assert "imported: 1" in first.output
    second = _invoke("ingest", payload, "--connection", "1")
    assert "synced: 1" in second.output

    assert "Oversell events: 1" in _invoke("oversells", "--tenant", "acme").output
    assert "Jobs: 2" in _invoke("jobs", "--all").output
    assert "orders: 1" in _invoke("stats").output

    _invoke("export", "--format", "csv", "--out", str(home / "out"))
    assert (home / "out" / "orderbridge_orders.csv").exists()
    assert list((home / "logs").glob("orderbridge-*.jsonl"))


def test_unknown_connection_is_rejected(home: Path) -> None:
    _invoke("init")
    result = runner.invoke(app, ["ingest", str(FIXTURES_DIR / "shopify.json"), "--connection", "42"])
    assert result.exit_code != 0


def test_export_rejects_unknown_format(home: Path) -> None:
    result = runner.invoke(app, ["export", "--format", "pdf"])
    assert result.exit_code != 0
