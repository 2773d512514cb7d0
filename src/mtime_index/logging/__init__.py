"""Diagnostic logging utilities."""

from .diagnostics import (
    CollectingDiagnostics,
    DiagnosticEvent,
    DiagnosticSink,
    JsonlDiagnosticLog,
    describe_cause,
    utc_timestamp,
)

__all__ = [
    "CollectingDiagnostics",
    "DiagnosticEvent",
    "DiagnosticSink",
    "JsonlDiagnosticLog",
    "describe_cause",
    "utc_timestamp",
]
