"""
Run log: console + JSON-lines audit of one orchestration run.

Every call to :meth:`RunLog.log` does three things:

- prints a coloured, timestamped line on the rich console;
- forwards the message to the ``codesweep.run`` stdlib logger at the mapped level;
- appends ``{"timestamp", "level", "message", "data"}`` as one JSON line to the
  log file (default ``cleanup-orchestrator.log``; truncated at open).

Levels
------
``info``, ``success``, ``warning``, ``error``. ``success`` is a presentation
level; it is logged as INFO.

Payloads
--------
``data`` is converted with :func:`jsonify` so that pydantic models, paths and
arbitrary objects never break the JSON log.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import IO, Any, Literal

from pydantic import BaseModel
from rich.console import Console

from codesweep.core.contracts.base import utc_timestamp
from codesweep.core.settings import get_logger

LogLevel = Literal["info", "success", "warning", "error"]

_STYLES: dict[str, str] = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}
_STD_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def jsonify(value: Any) -> Any:
    """
    Return a JSON-safe representation of ``value``.

    Strategies:
    - Primitives (None, bool, int, float, str) -> returned as-is.
    - pydantic models -> ``model_dump(mode="json")``.
    - dict -> new dict with keys coerced to str, values converted recursively.
    - list/tuple/set -> new list with recursive conversion.
    - Path -> ``str``; exceptions -> ``{"type", "message"}``.
    - anything else -> ``repr(obj)``.
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): jsonify(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [jsonify(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    return repr(value)


class RunLog:
    """Structured log for one run; safe to use when the file cannot be opened."""

    def __init__(
        self,
        path: str | Path | None,
        *,
        verbose: bool = False,
        console: Console | None = None,
    ) -> None:
        self.path: Path | None = Path(path) if path else None
        self.verbose = verbose
        self.console = console or Console()
        self._logger = get_logger("codesweep.run")
        self._stream: IO[str] | None = None
        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._stream = self.path.open("w", encoding="utf-8")
            except OSError as e:
                self.console.print(f"[red]Failed to initialize logging: {e}[/red]")

    def log(self, level: LogLevel, message: str, data: Any = None) -> dict[str, Any]:
        """Emit one entry and return it (as written to the file)."""
        entry = {
            "timestamp": utc_timestamp(),
            "level": level,
            "message": message,
            "data": jsonify(data),
        }

        style = _STYLES.get(level, "white")
        self.console.print(
            f"[{style}][{entry['timestamp']}] {level.upper()}: {message}[/{style}]",
            highlight=False,
        )
        if data is not None and self.verbose:
            self.console.print_json(json.dumps(entry["data"], default=str))

        self._logger.log(_STD_LEVELS.get(level, logging.INFO), message)

        if self._stream is not None:
            self._stream.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            self._stream.flush()
        return entry

    def info(self, message: str, data: Any = None) -> None:
        self.log("info", message, data)

    def success(self, message: str, data: Any = None) -> None:
        self.log("success", message, data)

    def warning(self, message: str, data: Any = None) -> None:
        self.log("warning", message, data)

    def error(self, message: str, data: Any = None) -> None:
        self.log("error", message, data)

    def close(self) -> None:
        """Close the file stream; further entries only reach the console."""
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> RunLog:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def read_entries(path: str | Path) -> list[dict[str, Any]]:
    """Load all entries of a JSON-lines run log."""
    entries: list[dict[str, Any]] = []
    with Path(path).open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                entries.append(json.loads(line))
    return entries


__all__ = ["RunLog", "LogLevel", "jsonify", "read_entries"]
