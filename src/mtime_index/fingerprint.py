"""Configuration fingerprints that guard a persisted index."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass

_LINE_BREAKS = ("\r", "\n")


@dataclass(slots=True, frozen=True)
class Fingerprint:
    """Opaque identity of the tool configuration that produced an index."""

    value: str

    def __post_init__(self) -> None:
        if any(char in self.value for char in _LINE_BREAKS):
            raise ValueError("Fingerprint must fit on a single line.")

    @classmethod
    def from_line(cls, line: str) -> Fingerprint:
        """Parse a fingerprint from one line of snapshot text."""
        if line.endswith("\r\n"):
            line = line[:-2]
        elif line.endswith(_LINE_BREAKS):
            line = line[:-1]
        return cls(value=line)

    @classmethod
    def from_settings(cls, tool_version: str, settings: Mapping[str, object]) -> Fingerprint:
        """Derive a fingerprint from a tool version and its settings."""
        raw = json.dumps(
            {"tool_version": tool_version, "settings": settings},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        ).encode("utf-8")
        return cls(value=hashlib.sha256(raw).hexdigest())

    def to_line(self) -> str:
        """Render the fingerprint as it is stored on the first snapshot line."""
        return self.value
