from __future__ import annotations

from pathlib import Path

import pandas as pd

from orderbridge.core.db import OrderBridgeRepository


def export_data(repository: OrderBridgeRepository, formats: list[str], out_dir: Path) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    orders_df = pd.DataFrame(repository.fetch_export_rows())
    oversells_df = pd.DataFrame(repository.fetch_oversell_events())

    created_files: list[Path] = []
    if "csv" in formats:
        orders_path = (out_dir / "orderbridge_orders.csv").resolve()
        orders_df.to_csv(orders_path, index=False, encoding="utf-8-sig")
        created_files.append(orders_path)

        oversells_path = (out_dir / "orderbridge_oversells.csv").resolve()
        oversells_df.to_csv(oversells_path, index=False, encoding="utf-8-sig")
        created_files.append(oversells_path)

    if "xlsx" in formats:
        xlsx_path = (out_dir / "orderbridge_export.xlsx").resolve()
        with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
            orders_df.to_excel(writer, index=False, sheet_name="orders")
            oversells_df.to_excel(writer, index=False, sheet_name="oversells")
        created_files.append(xlsx_path)

    return created_files
