from __future__ import annotations

import sqlite3
from decimal import Decimal
from pathlib import Path

sqlite3.register_adapter(Decimal, str)


def connect_db(db_path: Path, timeout_sec: float = 30.0) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # Transactions are opened explicitly (BEGIN IMMEDIATE) by the repository.
    connection = sqlite3.connect(str(db_path), timeout=timeout_sec, isolation_level=None)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    connection.execute("PRAGMA journal_mode = WAL")
    return connection


def _ensure_migrations_table(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            filename TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )


def apply_migrations(connection: sqlite3.Connection, migrations_dir: Path) -> list[str]:
    _ensure_migrations_table(connection)

    applied_files = {
        row["filename"] for row in connection.execute("SELECT filename FROM schema_migrations")
    }
    executed: list[str] = []

    for migration_file in sorted(migrations_dir.glob("*.sql")):
        if migration_file.name in applied_files:
            continue

        script = migration_file.read_text(encoding="utf-8")
        try:
            connection.executescript(f"BEGIN IMMEDIATE;\n{script}\n")
            connection.execute(
                "INSERT INTO schema_migrations (filename) VALUES (?)",
                (migration_file.name,),
            )
            connection.execute("COMMIT")
        except sqlite3.Error:
            if connection.in_transaction:
                connection.execute("ROLLBACK")
            raise
        executed.append(migration_file.name)

    return executed
