from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from orderbridge.core.db import OrderBridgeRepository

STATUS_RESYNC = "status_resync"
RETURNS_RESYNC = "returns_resync"
INVENTORY_PUSH = "inventory_push"

JOB_TYPES = (STATUS_RESYNC, RETURNS_RESYNC, INVENTORY_PUSH)


def _iso(moment: datetime) -> str:
    # Fixed precision keeps run_after lexically comparable in SQL.
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


@dataclass(slots=True)
class DeferredJob:
    id: int
    job_type: str
    payload: dict[str, Any]
    run_after: str
    status: str
    attempts: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> DeferredJob:
        return cls(
            id=int(row["id"]),
            job_type=row["job_type"],
            payload=json.loads(row["payload_json"]) if row.get("payload_json") else {},
            run_after=row["run_after"],
            status=row["status"],
            attempts=int(row.get("attempts") or 0),
        )


class JobScheduler(Protocol):
    def schedule(self, job_type: str, payload: dict[str, Any], delay_seconds: int) -> int: ...


class SqliteJobScheduler:
    """Persists deferred work into ``deferred_jobs`` for an external worker."""

    def __init__(
        self,
        repository: OrderBridgeRepository,
        logger: logging.Logger | logging.LoggerAdapter,
    ):
        self.repository = repository
        self.logger = logger

    def schedule(self, job_type: str, payload: dict[str, Any], delay_seconds: int) -> int:
        if job_type not in JOB_TYPES:
            raise ValueError(f"Unknown job type: {job_type}")
        run_after = datetime.now(timezone.utc) + timedelta(seconds=max(0, delay_seconds))
        run_after_iso = _iso(run_after)
        job_id = self.repository.insert_job(job_type, payload, run_after_iso)
        self.logger.info("Scheduled %s job %s at %s", job_type, job_id, run_after_iso)
        return job_id

    def due_jobs(self, now: datetime | None = None) -> list[DeferredJob]:
        moment = now or datetime.now(timezone.utc)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        rows = self.repository.fetch_due_jobs(_iso(moment))
        return [DeferredJob.from_row(row) for row in rows]
