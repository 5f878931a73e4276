"""Defaults for the CLI and server, optionally overridden from TOML."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from protopeek.wire import DEFAULT_MAX_DEPTH

_log = logging.getLogger("protopeek")

CONFIG_FILENAME = "protopeek.toml"


@dataclass(frozen=True)
class Settings:
    max_depth: int = DEFAULT_MAX_DEPTH
    max_input_bytes: int = 1 << 20
    format: str = "auto"
    grpc: bool = False
    port: int = 8001
    cors: bool = False

    def merged(self, **overrides: Any) -> Settings:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _read_table(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        doc = tomllib.load(f)
    if path.name == "pyproject.toml":
        return doc.get("tool", {}).get("protopeek", {})
    return doc


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from ``path``, or from ``protopeek.toml`` / ``pyproject.toml`` in cwd."""
    if path is None:
        root = Path.cwd().resolve()
        candidates = [root / CONFIG_FILENAME, root / "pyproject.toml"]
    else:
        if not path.is_file():
            raise FileNotFoundError(f"config file not found: {path}")
        candidates = [path]

    table: dict[str, Any] = {}
    for candidate in candidates:
        if candidate.is_file():
            table = _read_table(candidate)
            if table:
                _log.debug("settings loaded from %s", candidate)
                break

    known = {f.name for f in fields(Settings)}
    for key in sorted(set(table) - known):
        _log.warning("ignoring unknown setting %r", key)
    return Settings(**{k: v for k, v in table.items() if k in known})
