from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(slots=True)
class Settings:
    root_dir: Path
    data_dir: Path
    db_path: Path
    logs_dir: Path
    exports_dir: Path
    db_timeout_sec: float = 30.0
    status_resync_delay_sec: int = 60
    returns_resync_delay_sec: int = 90
    oversell_webhook_url: str | None = None
    notify_timeout_sec: float = 10.0

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)

        root_env = os.getenv("ORDERBRIDGE_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        data_dir = Path(os.getenv("ORDERBRIDGE_DATA_DIR", root_dir / "data")).expanduser().resolve()
        db_path = Path(os.getenv("ORDERBRIDGE_DB_PATH", data_dir / "orderbridge.sqlite3")).expanduser().resolve()
        logs_dir = Path(os.getenv("ORDERBRIDGE_LOG_DIR", root_dir / "logs")).expanduser().resolve()
        exports_dir = Path(os.getenv("ORDERBRIDGE_EXPORT_DIR", root_dir / "exports")).expanduser().resolve()

        db_timeout_sec = float(os.getenv("ORDERBRIDGE_DB_TIMEOUT_SEC", "30"))
        status_resync_delay_sec = int(os.getenv("ORDERBRIDGE_STATUS_RESYNC_DELAY_SEC", "60"))
        returns_resync_delay_sec = int(os.getenv("ORDERBRIDGE_RETURNS_RESYNC_DELAY_SEC", "90"))
        oversell_webhook_url = os.getenv("ORDERBRIDGE_OVERSELL_WEBHOOK_URL") or None
        notify_timeout_sec = float(os.getenv("ORDERBRIDGE_NOTIFY_TIMEOUT_SEC", "10"))

        return cls(
            root_dir=root_dir,
            data_dir=data_dir,
            db_path=db_path,
            logs_dir=logs_dir,
            exports_dir=exports_dir,
            db_timeout_sec=db_timeout_sec,
            status_resync_delay_sec=status_resync_delay_sec,
            returns_resync_delay_sec=returns_resync_delay_sec,
            oversell_webhook_url=oversell_webhook_url,
            notify_timeout_sec=notify_timeout_sec,
        )

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.data_dir, self.logs_dir, self.exports_dir]:
            path.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
