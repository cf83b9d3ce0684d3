from __future__ import annotations

import platform
import sqlite3
import sys

from orderbridge.config import Settings


def run_doctor_checks(settings: Settings) -> list[dict[str, str]]:
    checks: list[dict[str, str]] = []

    checks.append(
        {
            "check": "python_version",
            "status": "ok" if sys.version_info >= (3, 11) else "warn",
            "detail": platform.python_version(),
        }
    )

    checks.append(
        {
            "check": "sqlite_version",
            "status": "ok" if sqlite3.sqlite_version_info >= (3, 24, 0) else "warn",
            "detail": sqlite3.sqlite_version,
        }
    )

    checks.append(
        {
            "check": "db_parent",
            "status": "ok" if settings.db_path.parent.exists() else "warn",
            "detail": str(settings.db_path.parent),
        }
    )

    checks.append(
        {
            "check": "db_file",
            "status": "ok" if settings.db_path.exists() else "warn",
            "detail": str(settings.db_path) if settings.db_path.exists() else "run `orderbridge init` first",
        }
    )

    checks.append(
        {
            "check": "oversell_webhook",
            "status": "ok" if settings.oversell_webhook_url else "warn",
            "detail": settings.oversell_webhook_url or "not configured; oversells are only recorded locally",
        }
    )

    return checks
