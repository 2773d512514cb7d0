"""Persistent incremental-build index keyed by path and last-modified time."""

from .fingerprint import Fingerprint
from .index import FileIndex, IndexLocation, IndexWriteError

__version__ = "0.1.0"

__all__ = ["FileIndex", "Fingerprint", "IndexLocation", "IndexWriteError", "__version__"]
