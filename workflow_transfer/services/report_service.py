# workflow_transfer/services/report_service.py
"""
Report writers for transfer summaries.

JSON reports carry the full summary; CSV reports carry one row per item
outcome. File names include a UTC timestamp so runs never overwrite each
other.
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Union

logger = logging.getLogger("workflow_transfer.report_service")

CSV_COLUMNS = ["item_id", "name", "status", "reason", "error_category", "attempts", "duration_ms", "target_id"]


def _report_path(directory: Path, prefix: str, extension: str) -> Path:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return directory / f"{prefix}-{stamp}.{extension}"


def write_json_report(summary: Dict[str, Any], directory: Path, prefix: str = "transfer") -> Path:
    path = _report_path(directory, prefix, "json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, default=str)
    return path


def write_csv_report(summary: Dict[str, Any], directory: Path, prefix: str = "transfer") -> Path:
    path = _report_path(directory, prefix, "csv")
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for outcome in summary.get("outcomes", []):
            error = outcome.get("error") or {}
            writer.writerow({
                **{column: outcome.get(column) for column in CSV_COLUMNS},
                "error_category": error.get("category"),
            })
    return path


REPORT_WRITERS: Dict[str, Callable[[Dict[str, Any], Path, str], Path]] = {
    "json": write_json_report,
    "csv": write_csv_report,
}


def write_report(
    summary: Dict[str, Any],
    fmt: str,
    directory: Union[str, Path],
    prefix: str = "transfer",
) -> Path:
    """
    Write ``summary`` in format ``fmt`` under ``directory``.

    Raises:
        ValueError: If ``fmt`` is not a known format
    """
    writer = REPORT_WRITERS.get(fmt)
    if writer is None:
        raise ValueError(f"Unknown report format '{fmt}'. Available: {', '.join(sorted(REPORT_WRITERS))}")
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = writer(summary, directory, prefix)
    logger.info(f"Wrote {fmt} report to {path}")
    return path
