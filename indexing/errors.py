"""
MiniIndex Errors
================
Exceptions raised by the in-memory index maps.

Absence of a key is NOT an error: get(), first_key() and last_key()
return None. Only mapping subscription (m[key]) raises KeyError.
"""

from typing import Any


class MapError(Exception):
    """Base class for index map errors."""
    pass


class DuplicateKeyError(MapError, KeyError):
    """Raised by BPlusTreeMap.put() when the key is already present.

    The tree is left unchanged.
    """

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"Duplicate key {key!r}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class TypeMismatchError(MapError, TypeError):
    """Raised when a key or value is not of the map's declared type."""

    def __init__(self, value: Any, expected: Any, role: str):
        self.value = value
        self.expected = expected
        self.role = role
        super().__init__(
            f"{role} {value!r} has type {type(value).__name__}, "
            f"expected {describe_type(expected)}"
        )


def describe_type(expected: Any) -> str:
    """Readable name for a Python class or DataType member."""
    if isinstance(expected, type):
        return expected.__name__
    return getattr(expected, "value", str(expected))
