from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sheet_chat.records import Record, RecordSet, as_record_set, display_text

ALL_FIELDS = "all"
TERM_LABEL_CHARS = 10


@dataclass(frozen=True)
class Query:
    text: str = ""
    field: str = ALL_FIELDS

    @property
    def is_empty(self) -> bool:
        return self.text == ""


def _normalize(value) -> str:
    return display_text(value).lower()


def record_matches(record: Record, query: Query) -> bool:
    """Case-insensitive substring match of the query text against a record."""
    needle = query.text.lower()
    if query.field == ALL_FIELDS:
        return any(needle in _normalize(value) for value in record.values())
    return needle in _normalize(record.get(query.field, ""))


def filter_records(records: Iterable[Record], query: Query) -> RecordSet:
    """
    Return the records matching ``query``, in their original order.

    An empty query text returns the input set itself. A field no record has
    simply never matches.
    """
    records = as_record_set(records)
    if query.is_empty:
        return records
    return RecordSet(record for record in records if record_matches(record, query))


def search(records: Iterable[Record], text: str = "", field: str = ALL_FIELDS) -> RecordSet:
    return filter_records(records, Query(text=text, field=field or ALL_FIELDS))


def field_options(records: Iterable[Record]) -> list[str]:
    """Choices for the field selector: "all" followed by the first record's columns."""
    return [ALL_FIELDS, *as_record_set(records).headers]


def summarize_search(filtered: RecordSet, total: int, text: str = "") -> dict:
    term = None
    if text:
        term = text[:TERM_LABEL_CHARS] + "..." if len(text) > TERM_LABEL_CHARS else text
    return {
        "matched": len(filtered),
        "total": total,
        "label": f"{len(filtered)} of {total} records",
        "term": term,
    }
