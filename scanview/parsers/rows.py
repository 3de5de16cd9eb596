"""
Table-export parser: read JSON or CSV dumps of the scan tables.

A file belongs to the table its name starts with, e.g. `scanned_device.json`
or `rssi_timeseries_2024-05-01.csv`. JSON files hold an array of row
objects; CSV files have a header row, and empty cells read as null.
"""

import csv
import json
from pathlib import Path
from typing import Iterator, Optional, Tuple

from pydantic import BaseModel

from scanview.utils.validate import TABLE_MODELS, decode_rows

EXTENSIONS = (".json", ".csv")


def table_for(path: Path) -> Optional[str]:
    """
    Table name for an export file, or None if the file is not an export.

    The longest matching table name wins, so `location_scanned.json` is
    not read as `location`.
    """
    if path.suffix.lower() not in EXTENSIONS:
        return None
    stem = path.stem
    for table in sorted(TABLE_MODELS, key=len, reverse=True):
        if stem == table or stem.startswith(table + "_"):
            return table
    return None


def _read_raw(path: Path) -> list[dict]:
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON array of rows")
        return data
    with open(path, "r", encoding="utf-8", newline="") as f:
        return [
            {k: (v if v != "" else None) for k, v in row.items()}
            for row in csv.DictReader(f)
        ]


def parse_export(path: Path) -> Tuple[str, list[BaseModel]]:
    """
    Read one export file and validate every row against its table schema.

    Raises
    ------
    ValueError
        If the file name does not map to a known table.
    RowShapeError
        If any row does not match the table schema.
    """
    table = table_for(path)
    if table is None:
        raise ValueError(f"{path}: not a recognised table export")
    return table, decode_rows(TABLE_MODELS[table], _read_raw(path), table)


def iter_exports(src_dir: str) -> Iterator[Path]:
    """
    Recursively yield export files under `src_dir`, in a stable order.
    """
    for path in sorted(Path(src_dir).rglob("*")):
        if path.is_file() and table_for(path) is not None:
            yield path
