"""
session.py — conversation controller for sheet-chat

A ChatSession owns everything one conversation accumulates: the message
timeline and the records from every successful upload, in upload order.
The ingest, search and export modules stay stateless; they receive the
session's records and return new values.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sheet_chat.config import Settings
from sheet_chat.export import EXPORT_FILENAME, EXPORT_MIME, build_preview, export_bytes, serialize_csv
from sheet_chat.ingest import IngestResult, ingest_upload
from sheet_chat.logger import get_logger
from sheet_chat.records import RecordSet
from sheet_chat.search import ALL_FIELDS, Query, field_options, filter_records

logger = get_logger(__name__)

WELCOME_MESSAGE = "Welcome! Upload an Excel or CSV file to get started, or search through your existing data."
AUTO_REPLY = "Message received! Use the file upload or search features to process your data."

USER = "user"
SYSTEM = "system"


@dataclass
class Message:
    id: str
    role: str
    content: str
    timestamp: datetime
    records: Optional[RecordSet] = None
    error: bool = False


@dataclass
class Upload:
    filename: Optional[str]
    records: RecordSet
    detected_format: Optional[str]
    warnings: list[str] = field(default_factory=list)


class ChatSession:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.records = RecordSet()
        self.messages: list[Message] = []
        self.uploads: list[Upload] = []
        self.processing = False
        self._ids = itertools.count(1)
        self.add_message(WELCOME_MESSAGE, SYSTEM)

    def add_message(
        self,
        content: str,
        role: str,
        records: Optional[RecordSet] = None,
        *,
        error: bool = False,
    ) -> Message:
        message = Message(
            id=str(next(self._ids)),
            role=role,
            content=content,
            timestamp=datetime.now(),
            records=records,
            error=error,
        )
        self.messages.append(message)
        return message

    def handle_upload(self, source: Any, filename: Optional[str] = None) -> IngestResult:
        """
        Ingest one upload and append its records to the session.

        On failure the error message joins the timeline and the accumulated
        records are left exactly as they were.
        """
        if self.processing:
            raise RuntimeError("An upload is already being processed")

        self.processing = True
        try:
            result = ingest_upload(source, filename, max_bytes=self.settings.max_upload_bytes)
        finally:
            self.processing = False

        if not result.ok:
            self.add_message(result.message, SYSTEM, error=True)
            return result

        self.records = self.records.concat(result.records)
        self.uploads.append(
            Upload(
                filename=result.filename,
                records=result.records,
                detected_format=result.detected_format,
                warnings=list(result.warnings),
            )
        )
        name = result.filename or "file"
        self.add_message(
            f'✅ Successfully processed "{name}" with {len(result.records)} records',
            SYSTEM,
            result.records,
        )
        logger.info("Session now holds %d records from %d uploads", len(self.records), len(self.uploads))
        return result

    def send_message(self, text: str) -> Optional[Message]:
        if not text.strip():
            return None
        message = self.add_message(text, USER)
        self.add_message(AUTO_REPLY, SYSTEM)
        return message

    def search(self, text: str = "", field: str = ALL_FIELDS) -> RecordSet:
        return filter_records(self.records, Query(text=text, field=field or ALL_FIELDS))

    def field_options(self) -> list[str]:
        return field_options(self.records)

    def export_csv(self, records: Optional[RecordSet] = None) -> str:
        return serialize_csv(self.records if records is None else records)

    def export_download(self, records: Optional[RecordSet] = None) -> dict:
        """Download artifact for the records: file name, mime type and bytes."""
        return {
            "file_name": EXPORT_FILENAME,
            "mime": EXPORT_MIME,
            "data": export_bytes(self.records if records is None else records),
        }

    def preview(self, records: Optional[RecordSet] = None) -> dict:
        return build_preview(self.records if records is None else records, limit=self.settings.preview_rows)
