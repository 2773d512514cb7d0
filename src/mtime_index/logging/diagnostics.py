"""Diagnostic sinks for index lifecycle messages."""

from __future__ import annotations

import contextlib
import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol


class DiagnosticSink(Protocol):
    """Fire-and-forget receiver of human-readable index diagnostics."""

    def info(self, message: str) -> None: ...

    def warn(self, message: str, cause: BaseException | None = None) -> None: ...


@dataclass(slots=True, frozen=True)
class DiagnosticEvent:
    """One recorded diagnostic line."""

    timestamp: str
    level: str
    message: str
    cause: str | None


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def describe_cause(cause: BaseException | None) -> str | None:
    """Render an exception as a compact single-line description."""
    if cause is None:
        return None
    text = str(cause).replace("\r", " ").replace("\n", " ")
    if not text:
        return type(cause).__name__
    return f"{type(cause).__name__}: {text}"


@dataclass(slots=True)
class CollectingDiagnostics:
    """In-memory sink that keeps every event in arrival order."""

    events: list[DiagnosticEvent] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.events.append(
            DiagnosticEvent(timestamp=utc_timestamp(), level="info", message=message, cause=None)
        )

    def warn(self, message: str, cause: BaseException | None = None) -> None:
        self.events.append(
            DiagnosticEvent(
                timestamp=utc_timestamp(),
                level="warn",
                message=message,
                cause=describe_cause(cause),
            )
        )

    def messages(self, level: str | None = None) -> list[str]:
        """Return recorded messages, optionally filtered by level."""
        return [event.message for event in self.events if level is None or event.level == level]


class JsonlDiagnosticLog:
    """Append-only JSONL diagnostic log and bounded reader."""

    def __init__(self, path: Path) -> None:
        self._path = path
        with contextlib.suppress(OSError):
            self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    def info(self, message: str) -> None:
        self._record(
            DiagnosticEvent(timestamp=utc_timestamp(), level="info", message=message, cause=None)
        )

    def warn(self, message: str, cause: BaseException | None = None) -> None:
        self._record(
            DiagnosticEvent(
                timestamp=utc_timestamp(),
                level="warn",
                message=message,
                cause=describe_cause(cause),
            )
        )

    def _record(self, event: DiagnosticEvent) -> None:
        # sink callers never see log I/O failures
        with contextlib.suppress(OSError):
            self.append(event)

    def append(self, event: DiagnosticEvent) -> None:
        """Append an event as one JSON object per line."""
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(event), sort_keys=True))
            handle.write("\n")

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        """Read recent events, optionally filtered by timestamp lower bound."""
        if limit < 1:
            return []
        entries: list[dict[str, object]] = []
        if not self._path.exists():
            return entries
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if not isinstance(record, dict):
                    continue
                if since is not None:
                    ts = record.get("timestamp")
                    if not isinstance(ts, str) or ts < since:
                        continue
                entries.append(record)
        if len(entries) <= limit:
            return entries
        return entries[-limit:]
