"""Export stored metric snapshots to JSON or CSV files."""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv")
BASE_COLUMNS = ["id", "name", "created_at", "duration"]


def export_format(path: Path, fmt: Optional[str] = None) -> str:
    """Pick the export format from ``fmt`` or the file suffix.

    Raises:
        ValueError: Unknown format.
    """
    fmt = (fmt or Path(path).suffix.lstrip(".") or "json").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format: {fmt}. Choose from: {', '.join(EXPORT_FORMATS)}")
    return fmt


def snapshot_rows(snapshots: list[dict]) -> tuple[list[str], list[dict]]:
    """Flatten snapshot dicts into CSV columns and rows.

    Every metric key seen in any snapshot becomes a column, after the
    fixed ones; snapshots lacking a metric leave its cell empty.
    """
    keys = sorted({key for s in snapshots for key in (s.get("metrics") or {})})
    columns = BASE_COLUMNS + [k for k in keys if k not in BASE_COLUMNS]

    rows = []
    for snapshot in snapshots:
        row = {column: snapshot.get(column) for column in BASE_COLUMNS}
        for key, value in (snapshot.get("metrics") or {}).items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, sort_keys=True)
            row.setdefault(key, value)
        rows.append(row)
    return columns, rows


def export_snapshots(
    snapshots: list[dict],
    path: Path,
    fmt: Optional[str] = None
) -> int:
    """Write snapshots to ``path``, oldest first.

    Args:
        snapshots: Snapshot dicts as returned by ``MetricSnapshot.to_dict``
        path: Output file
        fmt: ``json`` or ``csv``; taken from the suffix when omitted

    Returns:
        Number of snapshots written
    """
    fmt = export_format(path, fmt)
    path = Path(path)
    ordered = sorted(snapshots, key=lambda s: (s.get("created_at") or "", s.get("id") or 0))
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "csv":
        columns, rows = snapshot_rows(ordered)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            writer.writerows(rows)
    else:
        data = {
            "exported_at": datetime.now().isoformat(),
            "total_snapshots": len(ordered),
            "snapshots": ordered,
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    logger.info(f"Exported {len(ordered)} snapshots to {path} ({fmt})")
    return len(ordered)
