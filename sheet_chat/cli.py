from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from sheet_chat import __version__ as TOOL_VERSION
from sheet_chat.config import load_settings, starter_config
from sheet_chat.contracts import build_payload, build_run_summary
from sheet_chat.export import EXPORT_FILENAME, build_preview, serialize_csv, write_csv
from sheet_chat.ingest import IO_FAILURE, MALFORMED_DOCUMENT, IngestResult
from sheet_chat.logger import configure_logging
from sheet_chat.records import RecordSet
from sheet_chat.search import ALL_FIELDS, summarize_search
from sheet_chat.session import ChatSession

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_READ_FAILED = 3

EXIT_CODES_BY_KIND = {
    MALFORMED_DOCUMENT: EXIT_PARSE_FAILED,
    IO_FAILURE: EXIT_READ_FAILED,
}


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class SheetChatArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def build_session(args: argparse.Namespace) -> ChatSession:
    try:
        settings = load_settings(args.config)
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    configure_logging("DEBUG" if getattr(args, "verbose", False) else settings.log_level)
    return ChatSession(settings)


def ingest_inputs(session: ChatSession, inputs: list[str], *, quiet: bool) -> list[IngestResult]:
    """Ingest every input, in order, into the session. Stops at the first failure."""
    results = []
    for raw in inputs:
        path = Path(raw)
        if not path.exists():
            raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)
        result = session.handle_upload(path)
        if not result.ok:
            raise CliError(
                f"{path.name}: {result.message} ({result.error})",
                EXIT_CODES_BY_KIND.get(result.error.kind, EXIT_READ_FAILED),
            )
        emit_human(session.messages[-1].content, quiet=quiet)
        for warning in result.warnings:
            emit_human(f"Warning: {warning}", quiet=quiet)
        results.append(result)
    return results


def describe_result(result: IngestResult) -> dict[str, Any]:
    return {
        "file": result.filename,
        "detected_format": result.detected_format,
        "encoding": result.encoding,
        "delimiter": result.delimiter,
        "sheet_name": result.sheet_name,
        "sheet_names": result.sheet_names,
        "records": len(result.records),
        "fields": result.records.headers,
        "warnings": list(result.warnings),
    }


def render_preview_text(preview: dict[str, Any]) -> str:
    if not preview["total"]:
        return "No data to extract"
    lines = [" | ".join(preview["headers"])]
    lines.extend(" | ".join(row) for row in preview["rows"])
    if preview["note"]:
        lines.append(preview["note"])
    lines.append(preview["fields_label"])
    return "\n".join(lines)


def filtered_records(session: ChatSession, args: argparse.Namespace) -> RecordSet:
    field = args.field or ALL_FIELDS
    if field != ALL_FIELDS and field not in session.records.all_fields():
        emit_human(f"Warning: no record has a field named '{field}'", quiet=args.quiet)
    return session.search(args.text or "", field)


def run_ingest(args: argparse.Namespace) -> int:
    session = build_session(args)
    results = ingest_inputs(session, args.inputs, quiet=args.quiet or args.json)
    limit = args.preview if args.preview is not None else session.settings.preview_rows
    preview = build_preview(session.records, limit=limit)

    if args.json:
        summary = build_run_summary(
            command="ingest",
            inputs=args.inputs,
            metrics={"records": len(session.records), "uploads": len(results)},
            warnings=[warning for result in results for warning in result.warnings],
        )
        payload = build_payload(
            "sheet_chat.ingest",
            summary,
            uploads=[describe_result(result) for result in results],
            total_records=len(session.records),
            fields=session.records.all_fields(),
            preview=preview,
        )
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(f"Extracted Data ({len(session.records)} records)", quiet=args.quiet)
        emit_human(render_preview_text(preview), quiet=args.quiet)
    return EXIT_SUCCESS


def run_search(args: argparse.Namespace) -> int:
    if args.limit is not None and args.limit < 0:
        raise CliError("--limit must be 0 or more", EXIT_COMMAND_ERROR)
    session = build_session(args)
    ingest_inputs(session, args.inputs, quiet=True)
    matches = filtered_records(session, args)
    summary = summarize_search(matches, len(session.records), args.text or "")

    if args.json:
        payload = build_payload(
            "sheet_chat.search",
            build_run_summary(command="search", inputs=args.inputs, metrics=summary),
            query={"text": args.text or "", "field": args.field or ALL_FIELDS},
            matches=matches.to_list(),
        )
        maybe_emit_json_stdout(payload, True)
        return EXIT_SUCCESS

    emit_human(summary["label"], quiet=args.quiet)
    if not matches and args.text:
        emit_human("No results found", quiet=args.quiet)
        return EXIT_SUCCESS
    limit = len(matches) if args.limit is None else args.limit
    print(render_preview_text(build_preview(matches, limit=limit)))
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace) -> int:
    session = build_session(args)
    ingest_inputs(session, args.inputs, quiet=args.quiet or args.stdout)
    records = filtered_records(session, args)

    if args.stdout:
        sys.stdout.write(serialize_csv(records))
        return EXIT_SUCCESS

    output_path = Path(args.output or EXPORT_FILENAME)
    if output_path.exists():
        raise CliError(f"Refusing to overwrite existing output: {output_path}", EXIT_COMMAND_ERROR)
    write_csv(records, output_path)

    if args.json:
        payload = build_payload(
            "sheet_chat.export",
            build_run_summary(
                command="export",
                inputs=args.inputs,
                output_path=str(output_path),
                metrics={"records": len(records), "columns": len(records.headers)},
            ),
            columns=records.headers,
        )
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(f"CSV written: {output_path} ({len(records)} records)", quiet=args.quiet)
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(starter_config(), encoding="utf-8")
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_config_show(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(args.config)
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    print(json_dumps(settings.to_dict()))
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("inputs", nargs="+", help="Input files (.xlsx .xlsm .xls .ods .csv), ingested in order")
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = SheetChatArgumentParser(prog="sheet-chat", description="Upload spreadsheets, search records, export CSV.")
    parser.add_argument("--config", help="JSON config file (defaults to $SHEET_CHAT_CONFIG)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest files and summarize the extracted records.")
    add_common_flags(ingest)
    ingest.add_argument("--preview", type=int, help="Number of preview rows (default from config)")

    search = subparsers.add_parser("search", help="Search the records of one or more files.")
    add_common_flags(search)
    search.add_argument("--text", default="", help="Case-insensitive text to look for")
    search.add_argument("--field", default=ALL_FIELDS, help="Column to search, or 'all'")
    search.add_argument("--limit", type=int, help="Maximum matches to print")

    export = subparsers.add_parser("export", help="Export the (optionally filtered) records as CSV.")
    add_common_flags(export)
    export.add_argument("-o", "--output", help=f"Output path (default {EXPORT_FILENAME})")
    export.add_argument("--stdout", action="store_true", help="Write CSV to stdout instead of a file")
    export.add_argument("--text", default="", help="Only export records matching this text")
    export.add_argument("--field", default=ALL_FIELDS, help="Column the text filter applies to")

    config = subparsers.add_parser("config", help="Generate or inspect configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default="sheet-chat.json", help="Config output path")
    config_subparsers.add_parser("show", help="Print the effective settings.")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "ingest":
            return run_ingest(args)
        if args.command == "search":
            return run_search(args)
        if args.command == "export":
            return run_export(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
            if args.config_command == "show":
                return run_config_show(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
