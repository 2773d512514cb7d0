"""UTC instant serialization used by snapshot entries."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

_NANOS_PER_SECOND = 1_000_000_000


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as an ISO-8601 UTC instant ending in ``Z``."""
    if value.tzinfo is None:
        raise ValueError("Timestamp must be timezone-aware.")
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 instant; an explicit offset or ``Z`` is required."""
    if not text or any(char.isspace() for char in text):
        raise ValueError(f"Invalid instant: {text!r}")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"Instant has no UTC offset: {text!r}")
    try:
        return parsed.astimezone(UTC)
    except OverflowError as error:
        raise ValueError(f"Instant is out of range in UTC: {text!r}") from error


def file_last_modified(path: Path) -> datetime:
    """Return the file mtime as a UTC datetime with microsecond precision."""
    mtime_ns = path.stat().st_mtime_ns
    seconds, nanos = divmod(mtime_ns, _NANOS_PER_SECOND)
    return datetime.fromtimestamp(seconds, tz=UTC).replace(microsecond=nanos // 1000)
