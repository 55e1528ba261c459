"""
ingest.py — spreadsheet ingestor for sheet-chat

Turns the raw bytes of an uploaded .xlsx/.xlsm/.xls/.ods/.csv file into a
RecordSet. The format is sniffed from the content; the filename is only used
in log lines and messages.

Public API:
    result = ingest(content, filename="customers.xlsx")
    if result.ok:
        records = result.records

    records = decode_records(content)      # raises IngestError
    result  = ingest_upload(uploaded_file) # reads the source first

IngestResult fields:
    records          — RecordSet (empty on failure)
    error            — IngestError or None
    filename         — advisory filename, if given
    detected_format  — "csv", "xlsx", "xlsm", "xls" or "ods"
    encoding         — detected encoding for text input; None for workbooks
    delimiter        — delimiter for text input; None for workbooks
    sheet_name       — sheet that was read; None for text input
    sheet_names      — all sheets in document order; None for text input
    warnings         — list of warning strings
"""

from __future__ import annotations

import codecs
import csv
import io
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from sheet_chat.logger import get_logger
from sheet_chat.records import EMPTY, Record, RecordSet, display_text, is_blank, normalize_cell

logger = get_logger(__name__)

MALFORMED_DOCUMENT = "malformed_document"
IO_FAILURE = "io_failure"
MISSING_DEPENDENCY = "missing_dependency"
TOO_LARGE = "too_large"

USER_MESSAGES = {
    MALFORMED_DOCUMENT: "Error parsing file. Please ensure it's a valid Excel or CSV file.",
    IO_FAILURE: "Error reading file.",
}

OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_MAGIC = b"PK\x03\x04"
ODS_MIMETYPE = "application/vnd.oasis.opendocument.spreadsheet"
TEXT_BOMS = (
    (b"\xef\xbb\xbf", "utf-8-sig"),
    (b"\xff\xfe\x00\x00", "utf-32"),
    (b"\x00\x00\xfe\xff", "utf-32"),
    (b"\xff\xfe", "utf-16"),
    (b"\xfe\xff", "utf-16"),
)
SNIFF_BYTES = 8192
CONTROL_CHAR_LIMIT = 0.10
MIN_ENCODING_CONFIDENCE = 0.5
ENCODING_SAMPLE_BYTES = 64 * 1024
DELIMITER_CANDIDATES = [",", ";", "\t", "|"]
WORKBOOK_ENGINES = {"xlsx": "openpyxl", "xlsm": "openpyxl", "xls": "xlrd", "ods": "odf"}


class IngestError(Exception):
    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.kind, str(self))


@dataclass
class IngestResult:
    records: RecordSet = field(default_factory=RecordSet)
    error: Optional[IngestError] = None
    filename: Optional[str] = None
    detected_format: Optional[str] = None
    encoding: Optional[str] = None
    delimiter: Optional[str] = None
    sheet_name: Optional[str] = None
    sheet_names: Optional[list[str]] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error is not None:
            return self.error.user_message
        name = self.filename or "file"
        return f"Successfully processed {len(self.records)} records from {name}"


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT SNIFFING
# ══════════════════════════════════════════════════════════════════════════════

def _sniff_zip(content: bytes) -> str:
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = set(zf.namelist())
            if "mimetype" in names:
                mimetype = zf.read("mimetype").decode("utf-8", errors="ignore").strip()
                if mimetype == ODS_MIMETYPE:
                    return "ods"
            if "xl/workbook.xml" in names:
                return "xlsm" if "xl/vbaProject.bin" in names else "xlsx"
    except (zipfile.BadZipFile, OSError) as exc:
        raise IngestError(MALFORMED_DOCUMENT, f"Broken zip container: {exc}") from exc
    raise IngestError(MALFORMED_DOCUMENT, "Zip archive is not a spreadsheet workbook")


def _control_ratio(text: str) -> float:
    """Share of C0/C1 control characters and U+FFFD replacements in ``text``."""
    if not text:
        return 0.0
    controls = sum(
        1
        for ch in text
        if (ch < " " and ch not in "\t\n\r") or "\x7f" <= ch <= "\x9f" or ch == "\ufffd"
    )
    return controls / len(text)


def _looks_binary(sample: bytes) -> bool:
    """
    Heuristic for non-text content.

    A sample is text when it is valid UTF-8, or when chardet names an encoding
    with at least MIN_ENCODING_CONFIDENCE. Either way the decoded sample must
    stay under CONTROL_CHAR_LIMIT control characters. NUL bytes are binary.
    """
    if not sample:
        return False
    if b"\x00" in sample:
        return True

    try:
        # Non-final decode so a multibyte character cut at the sample edge is fine.
        text = codecs.getincrementaldecoder("utf-8")().decode(sample, final=False)
    except UnicodeDecodeError:
        text = None
    if text is not None:
        return _control_ratio(text) > CONTROL_CHAR_LIMIT

    # Single-byte view: bytes 0x80-0x9F read as C1 controls.
    if _control_ratio(sample.decode("latin-1")) > CONTROL_CHAR_LIMIT:
        return True

    import chardet

    result = chardet.detect(sample)
    encoding = result.get("encoding")
    if not encoding or (result.get("confidence") or 0.0) < MIN_ENCODING_CONFIDENCE:
        return True
    try:
        decoded = sample.decode(encoding, errors="replace")
    except LookupError:
        return True
    return _control_ratio(decoded) > CONTROL_CHAR_LIMIT


def _bom_encoding(content: bytes) -> Optional[str]:
    for bom, encoding in TEXT_BOMS:
        if content.startswith(bom):
            return encoding
    return None


def sniff_format(content: bytes) -> str:
    """
    Identify the container format from the bytes themselves.

    Returns one of "xlsx", "xlsm", "xls", "ods", "csv".
    Raises IngestError(MALFORMED_DOCUMENT) for content that is none of these.
    """
    if content.startswith(ZIP_MAGIC):
        return _sniff_zip(content)
    if content.startswith(OLE2_MAGIC):
        return "xls"
    bom = _bom_encoding(content)
    if bom:
        sample = content[:SNIFF_BYTES].decode(bom, errors="replace")
        if _control_ratio(sample) > CONTROL_CHAR_LIMIT:
            raise IngestError(MALFORMED_DOCUMENT, f"Content starts with a {bom} BOM but is not text")
        return "csv"
    if _looks_binary(content[:SNIFF_BYTES]):
        raise IngestError(MALFORMED_DOCUMENT, "Content is binary data, not a spreadsheet")
    return "csv"


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    """Detect encoding from a byte sample; chardet result or utf-8."""
    bom = _bom_encoding(raw)
    if bom:
        return bom
    import chardet

    result = chardet.detect(raw[:ENCODING_SAMPLE_BYTES])
    detected = result.get("encoding")
    if not detected:
        return "utf-8"
    if detected.upper().replace("-", "") == "ASCII":
        return "utf-8"
    return detected


def _decode_line(raw_line: bytes, encodings: tuple[str, ...]) -> str:
    for encoding in encodings:
        try:
            return raw_line.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return raw_line.decode("cp1252", errors="replace")


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """Decode an upload one line at a time so a file mixing encodings still reads.

    Each line tries UTF-8, then the detected encoding, then latin-1. NUL
    characters are dropped from the result.
    """
    encodings = tuple(dict.fromkeys(enc for enc in ("utf-8", preferred_encoding, "latin-1") if enc))
    return "\n".join(
        _decode_line(raw_line, encodings).replace("\x00", "") for raw_line in raw.split(b"\n")
    )


def _decode_text(content: bytes) -> tuple[str, str]:
    encoding = _detect_encoding(content)
    if encoding in {"utf-16", "utf-32"}:
        # Wide encodings contain NUL bytes in every line; decode whole.
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError as exc:
            raise IngestError(MALFORMED_DOCUMENT, f"Could not decode {encoding} text: {exc}") from exc
    else:
        text = _read_text_safely(content, encoding)
    return text.lstrip("\ufeff"), encoding


def _delimiter_score(lines: list[str], delimiter: str) -> Optional[tuple[float, int]]:
    """Score how well ``delimiter`` splits ``lines`` into a table, or None if it can't."""
    rows = [
        row
        for row in csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)
        if any(cell.strip() for cell in row)
    ]
    if len(rows) < 2:
        return None

    widths = [len(row) for row in rows]
    width, count = Counter(widths).most_common(1)[0]
    score = width * 2.0 + width * count / len(widths)
    if widths[0] == width:
        score += 1.0
    if width == 1:
        score -= 10.0
    return score, width


def _detect_delimiter(text: str) -> str:
    """Pick the delimiter of a text upload among DELIMITER_CANDIDATES.

    csv.Sniffer decides when it can; otherwise the candidate giving the most
    consistent, widest rows over the first non-blank lines wins. Comma is the
    default.
    """
    lines = [line for line in text.splitlines() if line.strip()][:50]
    if lines:
        try:
            return csv.Sniffer().sniff("\n".join(lines[:25]), delimiters="".join(DELIMITER_CANDIDATES)).delimiter
        except csv.Error:
            pass

    best, best_key = ",", None
    for delimiter in DELIMITER_CANDIDATES:
        key = _delimiter_score(lines, delimiter)
        if key is not None and (best_key is None or key > best_key):
            best, best_key = delimiter, key
    return best


def _text_grid(content: bytes) -> tuple[list[list[Any]], str, str]:
    text, encoding = _decode_text(content)
    delimiter = _detect_delimiter(text)
    try:
        grid = [list(row) for row in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)]
    except csv.Error as exc:
        raise IngestError(MALFORMED_DOCUMENT, f"Could not parse delimited text: {exc}") from exc
    return grid, encoding, delimiter


# ══════════════════════════════════════════════════════════════════════════════
# WORKBOOK DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _require_engine(detected_format: str) -> None:
    # .xls and .ods need optional engines; give a clear error if missing.
    if detected_format == "xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise IngestError(MISSING_DEPENDENCY, ".xls files require xlrd — run: pip install xlrd")
    if detected_format == "ods":
        try:
            import odf  # noqa: F401
        except ImportError:
            raise IngestError(MISSING_DEPENDENCY, ".ods files require odfpy — run: pip install odfpy")


def _workbook_grid(content: bytes, detected_format: str) -> tuple[list[list[Any]], str, list[str]]:
    """Read the first sheet, by document order, as a grid of raw cell values."""
    import pandas as pd

    _require_engine(detected_format)
    engine = WORKBOOK_ENGINES[detected_format]

    try:
        with pd.ExcelFile(io.BytesIO(content), engine=engine) as xf:
            sheet_names = [str(name) for name in xf.sheet_names]
            if not sheet_names:
                raise IngestError(MALFORMED_DOCUMENT, "Workbook contains no sheets")
            first = xf.sheet_names[0]
            frame = pd.read_excel(
                xf,
                sheet_name=first,
                header=None,
                dtype=object,
                keep_default_na=False,
            )
    except IngestError:
        raise
    except Exception as exc:
        raise IngestError(MALFORMED_DOCUMENT, f"Could not read workbook: {exc}") from exc

    grid = [list(row) for row in frame.itertuples(index=False, name=None)]
    return grid, sheet_names[0], sheet_names


# ══════════════════════════════════════════════════════════════════════════════
# GRID → RECORDS
# ══════════════════════════════════════════════════════════════════════════════

def _trim_grid(grid: list[list[Any]]) -> list[list[Any]]:
    """Cut the grid down to its used range.

    Leading and trailing blank rows go, as do leading columns that are blank
    in every row. Blank rows between data rows are kept.
    """
    def blank_row(row: list[Any]) -> bool:
        return all(is_blank(cell) for cell in row)

    start = 0
    while start < len(grid) and blank_row(grid[start]):
        start += 1
    end = len(grid)
    while end > start and blank_row(grid[end - 1]):
        end -= 1
    rows = grid[start:end]
    if not rows:
        return []

    offset = min(
        next((idx for idx, cell in enumerate(row) if not is_blank(cell)), len(row))
        for row in rows
        if not blank_row(row)
    )
    if offset:
        rows = [row[offset:] for row in rows]
    return rows


def header_names(header_row: list[Any]) -> list[str]:
    """Column names from the header row, left to right, as text.

    Trailing blank cells are not columns. Duplicates are kept.
    """
    cells = list(header_row)
    while cells and is_blank(cells[-1]):
        cells.pop()
    return [display_text(cell) for cell in cells]


def rows_to_records(grid: list[list[Any]]) -> RecordSet:
    """
    Map a grid (row 0 = headers) to records.

    A short row pads missing cells with "" and a long row loses the cells
    that have no header. With duplicate header names the later column's
    value wins.
    """
    if not grid:
        return RecordSet()

    headers = header_names(grid[0])
    records: list[Record] = []
    for row in grid[1:]:
        record: Record = {}
        for index, header in enumerate(headers):
            record[header] = normalize_cell(row[index]) if index < len(row) else EMPTY
        records.append(record)
    return RecordSet(records)


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def _decode(content: bytes, result: IngestResult, max_bytes: Optional[int]) -> RecordSet:
    if max_bytes is not None and len(content) > max_bytes:
        raise IngestError(
            TOO_LARGE,
            f"File is {len(content) / (1024 * 1024):.1f} MB, above the {max_bytes // (1024 * 1024)} MB upload limit",
        )

    detected = sniff_format(content)
    result.detected_format = detected

    if detected == "csv":
        grid, result.encoding, result.delimiter = _text_grid(content)
    else:
        grid, result.sheet_name, result.sheet_names = _workbook_grid(content, detected)
        if len(result.sheet_names) > 1:
            others = result.sheet_names[1:]
            result.warnings.append(
                f"Multiple sheets found ({len(result.sheet_names)} total); "
                f"used '{result.sheet_name}'. Ignored: {others}"
            )

    return rows_to_records(_trim_grid(grid))


def decode_records(
    content: bytes,
    filename: Optional[str] = None,
    *,
    max_bytes: Optional[int] = None,
) -> RecordSet:
    """Decode spreadsheet bytes into records. Raises IngestError."""
    return _decode(bytes(content), IngestResult(filename=filename), max_bytes)


def ingest(
    content: bytes,
    filename: Optional[str] = None,
    *,
    max_bytes: Optional[int] = None,
) -> IngestResult:
    """
    Decode spreadsheet bytes into an IngestResult.

    Core failures are returned in ``result.error``; they are never raised.

    Args:
        content:   Raw file bytes. Never modified.
        filename:  Advisory name for messages and logs; not used for format
                   detection.
        max_bytes: Optional upload size limit.
    """
    result = IngestResult(filename=filename)
    try:
        result.records = _decode(bytes(content), result, max_bytes)
    except IngestError as exc:
        logger.warning("Ingest of %s failed (%s): %s", filename or "<bytes>", exc.kind, exc)
        result.error = exc
        result.records = RecordSet()
        return result

    logger.info(
        "Ingested %s as %s: %d records, %d columns",
        filename or "<bytes>",
        result.detected_format,
        len(result.records),
        len(result.records.headers),
    )
    for warning in result.warnings:
        logger.warning("%s: %s", filename or "<bytes>", warning)
    return result


def read_upload(source: Any) -> bytes:
    """
    Read a whole byte source into memory.

    Accepts bytes, a filesystem path, or a file-like object exposing
    ``getvalue()`` (Streamlit uploads, BytesIO) or ``read()``.
    Raises IngestError(IO_FAILURE) when the source cannot be read completely.
    """
    try:
        if isinstance(source, (bytes, bytearray, memoryview)):
            return bytes(source)
        if isinstance(source, (str, Path)):
            return Path(source).read_bytes()
        if hasattr(source, "getvalue"):
            data = source.getvalue()
        elif hasattr(source, "read"):
            data = source.read()
        else:
            raise IngestError(IO_FAILURE, f"Unsupported upload source: {type(source).__name__}")
    except IngestError:
        raise
    except (OSError, ValueError) as exc:
        # ValueError covers reads from an already-closed file object.
        raise IngestError(IO_FAILURE, f"Could not read upload: {exc}") from exc

    if isinstance(data, str):
        data = data.encode("utf-8")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise IngestError(IO_FAILURE, "Upload source did not return bytes")

    expected = getattr(source, "size", None)
    if isinstance(expected, int) and expected != len(data):
        raise IngestError(IO_FAILURE, f"Short read: got {len(data)} of {expected} bytes")
    return bytes(data)


def upload_name(source: Any, filename: Optional[str] = None) -> Optional[str]:
    if filename:
        return filename
    if isinstance(source, (str, Path)):
        return Path(source).name
    name = getattr(source, "name", None)
    return Path(name).name if isinstance(name, str) and name else None


def ingest_upload(
    source: Any,
    filename: Optional[str] = None,
    *,
    max_bytes: Optional[int] = None,
) -> IngestResult:
    """Read a byte source to completion, then ingest it."""
    name = upload_name(source, filename)
    try:
        content = read_upload(source)
    except IngestError as exc:
        logger.warning("Reading %s failed: %s", name or "<upload>", exc)
        return IngestResult(filename=name, error=exc)
    return ingest(content, name, max_bytes=max_bytes)
