"""Runtime settings for sheet-chat.

Settings come from the built-in defaults, then an optional JSON config file
(``--config`` or ``SHEET_CHAT_CONFIG``), then environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

ENV_OVERRIDES = {
    "preview_rows": "SHEET_CHAT_PREVIEW_ROWS",
    "max_upload_mb": "SHEET_CHAT_MAX_UPLOAD_MB",
    "log_level": "SHEET_CHAT_LOG_LEVEL",
}


@dataclass(frozen=True)
class Settings:
    preview_rows: int = 5
    max_upload_mb: int = 100
    log_level: str = "WARNING"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce(name: str, raw: Any) -> Any:
    if name in {"preview_rows", "max_upload_mb"}:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Setting '{name}' must be an integer, got {raw!r}")
        if value < 1:
            raise ValueError(f"Setting '{name}' must be at least 1, got {value}")
        return value
    if name == "log_level":
        value = str(raw).strip().upper()
        if value not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Setting 'log_level' must be one of {sorted(VALID_LOG_LEVELS)}, got {raw!r}"
            )
        return value
    raise ValueError(f"Unknown setting: {name}")


def read_config_file(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ValueError(f"Config file not found: {path}")
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config file is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Config file must contain a JSON object")
    return payload


def load_settings(
    path: "str | Path | None" = None,
    environ: Optional[dict[str, str]] = None,
) -> Settings:
    """Resolve settings from defaults, config file, then environment."""
    env = os.environ if environ is None else environ
    known = {field.name for field in fields(Settings)}
    values: dict[str, Any] = {}

    config_path = path or env.get("SHEET_CHAT_CONFIG")
    if config_path:
        for name, raw in read_config_file(Path(config_path)).items():
            if name not in known:
                raise ValueError(f"Unknown setting in {config_path}: {name}")
            values[name] = _coerce(name, raw)

    for name, env_name in ENV_OVERRIDES.items():
        raw = env.get(env_name)
        if raw not in (None, ""):
            values[name] = _coerce(name, raw)

    return replace(Settings(), **values)


def starter_config() -> str:
    return json.dumps(Settings().to_dict(), indent=2) + "\n"
