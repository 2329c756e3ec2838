"""
MiniIndex Indexing Module
=========================
In-memory associative maps used as building blocks for database indexes.

Components:
  - linear_hash: LinearHashMap, unordered map over a linear hashing table
  - bptree: BPlusTreeMap, ordered map with point and range queries
  - types: key/value type descriptors and validation
  - errors: DuplicateKeyError, TypeMismatchError

Concurrency: single-threaded. Callers sharing a map across threads must
wrap it in their own lock (a reader-writer lock permits concurrent get /
range scans against exclusive put).
"""

from indexing.errors import MapError, DuplicateKeyError, TypeMismatchError
from indexing.types import DataType
from indexing.linear_hash import LinearHashMap
from indexing.bptree import BPlusTreeMap

__all__ = [
    "MapError", "DuplicateKeyError", "TypeMismatchError",
    "DataType",
    "LinearHashMap",
    "BPlusTreeMap",
]
