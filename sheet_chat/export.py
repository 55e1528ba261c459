"""
export.py — CSV extraction for sheet-chat

Serializes records to CSV text for download and builds the small preview
shown next to an upload.

Only the first record's keys become columns, and header names are written
unquoted. A field is quoted only when it contains a comma or a double quote;
embedded newlines are written as-is, so a value containing a line break does
not survive a round trip through a strict CSV reader.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

from sheet_chat.records import Record, as_record_set, display_text

EXPORT_FILENAME = "extracted_data.csv"
EXPORT_MIME = "text/csv; charset=utf-8"
DEFAULT_PREVIEW_ROWS = 5
PREVIEW_EMPTY = "N/A"


def escape_field(value: Any) -> str:
    text = display_text(value)
    if "," in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def serialize_csv(records: Iterable[Record]) -> str:
    records = as_record_set(records)
    if not records:
        return ""

    headers = records.headers
    lines = [",".join(headers)]
    for record in records:
        lines.append(",".join(escape_field(record.get(header, "")) for header in headers))
    return "\n".join(lines)


def export_bytes(records: Iterable[Record]) -> bytes:
    return serialize_csv(records).encode("utf-8")


def write_csv(records: Iterable[Record], path: "str | Path") -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(export_bytes(records))
    return path


def build_preview(records: Iterable[Record], limit: int = DEFAULT_PREVIEW_ROWS) -> dict:
    """
    Preview payload for a record set.

    Keys:
        headers       : first record's keys
        rows          : first ``limit`` records as lists of display text,
                        empty values shown as "N/A"
        total, shown  : record counts
        truncated     : True when rows were left out
        note          : "Showing 5 of N records. ..." when truncated, else None
        fields_label  : "Fields detected: a, b"
    """
    records = as_record_set(records)
    headers = records.headers
    shown = records[:limit]
    rows = [
        [display_text(record.get(header, "")) or PREVIEW_EMPTY for header in headers]
        for record in shown
    ]
    truncated = len(records) > limit
    return {
        "headers": headers,
        "rows": rows,
        "total": len(records),
        "shown": len(shown),
        "truncated": truncated,
        "note": (
            f"Showing {limit} of {len(records)} records. Download CSV to see all data."
            if truncated
            else None
        ),
        "fields_label": "Fields detected: " + ", ".join(headers),
    }
