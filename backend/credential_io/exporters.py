"""Serialize normalized records back to CSV or JSON text."""

from __future__ import annotations

import csv
import io
import json
from typing import Sequence

from .import_contract import NormalizedRecord, SerializeError, UnsupportedFormatError

BASE_COLUMNS = ("site", "username", "password")
METADATA_COLUMNS = ("url", "notes", "folder")


def to_csv(records: Sequence[NormalizedRecord], include_metadata: bool = False) -> str:
    """Fields holding a comma, quote, CR or LF are quoted; absent values are empty."""

    columns = BASE_COLUMNS + METADATA_COLUMNS if include_metadata else BASE_COLUMNS
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for record in records:
        writer.writerow([getattr(record, column) or "" for column in columns])
    return buffer.getvalue()


def to_json(records: Sequence[NormalizedRecord]) -> str:
    try:
        return json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializeError(f"Unable to serialize records: {exc}") from exc


def export_records(records: Sequence[NormalizedRecord], fmt: str, include_metadata: bool = False) -> str:
    key = str(fmt or "").strip().lower()
    if key == "csv":
        return to_csv(records, include_metadata=include_metadata)
    if key == "json":
        return to_json(records)
    raise UnsupportedFormatError(f"Unsupported export format '{fmt}'. Supported values: csv, json")
