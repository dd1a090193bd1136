from __future__ import annotations

import csv
import json
import os
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import EXPORT_COLUMNS, Event
from .normalize import auto_detect_mapping, transform_row

def write_csv(path: str, records: Iterable[Event]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for r in records:
            writer.writerow(r.to_row())

def write_json(path: str, records: Iterable[Event]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_json() for r in records], f, ensure_ascii=False, indent=2)

def read_csv(path: str) -> Tuple[List[str], List[Dict[str, Any]]]:
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        headers = list(reader.fieldnames or [])
        rows = []
        for row in reader:
            # skip blank lines and rows of empty cells
            if not any((v or "").strip() for k, v in row.items() if isinstance(v, str)):
                continue
            rows.append(row)
    return headers, rows

def events_from_rows(
    headers: List[str],
    rows: List[Mapping[str, Any]],
    mapping: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> Tuple[Dict[str, str], List[Dict[str, Any]]]:
    mapping = dict(mapping) if mapping else auto_detect_mapping(headers)
    return mapping, [transform_row(r, mapping, now=now) for r in rows]

def events_from_csv(
    path: str,
    mapping: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> Tuple[Dict[str, str], List[Dict[str, Any]]]:
    """Read a CSV file and return (column mapping used, canonical event dicts)."""
    headers, rows = read_csv(path)
    if not rows:
        raise ValueError(f"No data found in CSV file: {path}")
    return events_from_rows(headers, rows, mapping=mapping, now=now)
