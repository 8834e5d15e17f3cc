"""
Record stores: the async key-value contract and its backends.
"""

from .base import Store
from .file import FileStore
from .memory import MemoryStore
from .sqlite import SQLiteStore

__all__ = ["Store", "MemoryStore", "SQLiteStore", "FileStore"]
