"""
records.py — in-memory record model for sheet-chat

A Record is one spreadsheet row as a ``{column name: cell value}`` dict.
Cell values are a closed set: text (``str``), number (``int``/``float``),
boolean (``bool``) or empty (``""``). Every decoder output goes through
``normalize_cell`` and every consumer that needs text goes through
``display_text``, so filtering, previewing and CSV export agree on how a
value reads.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Any, Iterable, Iterator, Union

CellValue = Union[str, int, float, bool]
Record = dict[str, CellValue]

EMPTY = ""


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    # pandas.NaT subclasses datetime, so it must be caught before formatting.
    return type(value).__name__ == "NaTType"


def normalize_cell(value: Any) -> CellValue:
    """Map a decoder cell value into the closed CellValue set."""
    if hasattr(value, "item") and type(value).__module__ == "numpy":
        value = value.item()
    if _is_missing(value):
        return EMPTY
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, str):
        return value
    return str(value)


def display_text(value: Any) -> str:
    """Canonical textual form of a cell value. Missing values read as ``""``."""
    if _is_missing(value):
        return EMPTY
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    return display_text(normalize_cell(value))


def is_blank(value: Any) -> bool:
    return display_text(value).strip() == ""


class RecordSet:
    """Immutable, ordered sequence of records.

    Filtering and concatenation return new RecordSets; the records of an
    existing set are never replaced or reordered.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._records: tuple[Record, ...] = tuple(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return RecordSet(self._records[index])
        return self._records[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RecordSet):
            return self._records == other._records
        if isinstance(other, (list, tuple)):
            return list(self._records) == list(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"RecordSet({len(self._records)} records)"

    def concat(self, other: Iterable[Record]) -> "RecordSet":
        return RecordSet(self._records + tuple(other))

    def to_list(self) -> list[Record]:
        return list(self._records)

    @property
    def headers(self) -> list[str]:
        """Keys of the first record, in order. Empty for an empty set."""
        if not self._records:
            return []
        return list(self._records[0].keys())

    def all_fields(self) -> list[str]:
        """Ordered union of keys across every record."""
        seen: dict[str, None] = {}
        for record in self._records:
            for key in record:
                seen.setdefault(key, None)
        return list(seen)


def as_record_set(records: Iterable[Record]) -> RecordSet:
    if isinstance(records, RecordSet):
        return records
    return RecordSet(records)
