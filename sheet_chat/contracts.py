"""Shared versioned contracts for machine-readable sheet-chat outputs."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from sheet_chat import __version__ as TOOL_VERSION

CONTRACT_VERSIONS = {
    "sheet_chat.ingest": "1.0.0",
    "sheet_chat.search": "1.0.0",
    "sheet_chat.export": "1.0.0",
}


def utc_now_iso() -> str:
    override = os.environ.get("SHEET_CHAT_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    inputs: list[str],
    status: str = "ok",
    output_path: str | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "sheet-chat",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": list(inputs),
        "output_file": output_path,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def build_payload(name: str, run_summary: dict[str, Any], **body: Any) -> dict[str, Any]:
    """Wrap a command result in its contract envelope."""
    contract = build_contract(name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "run_summary": run_summary,
        **body,
    }
