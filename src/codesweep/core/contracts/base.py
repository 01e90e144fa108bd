"""Shared small types for the run and backup contracts.

Timestamp format
----------------
All records carry UTC timestamps serialized as ISO-8601 strings with
millisecond precision and a trailing ``"Z"``, e.g. ``"2025-11-12T02:02:37.104Z"``.
Strings (rather than ``datetime``) keep the JSON artifacts (run log, report,
manifest) byte-stable and trivially diffable.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

BackupMethod = Literal["git", "filesystem"]


def utc_timestamp() -> str:
    """Return the current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def filename_timestamp(ts: str | None = None) -> str:
    """Return ``ts`` (default: now) with ``:`` and ``.`` replaced for filenames."""
    return (ts or utc_timestamp()).replace(":", "-").replace(".", "-")


class Record(BaseModel):
    """Base for persisted records: JSON-friendly and tolerant of extra keys."""

    model_config = ConfigDict(extra="ignore")

    def to_json_dict(self) -> dict[str, object]:
        """Dump to a plain, JSON-safe ``dict``."""
        return self.model_dump(mode="json")


__all__ = ["BackupMethod", "Record", "utc_timestamp", "filename_timestamp"]
