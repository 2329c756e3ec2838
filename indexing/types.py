"""
MiniIndex Key/Value Types
=========================
Type descriptors accepted by the map constructors, and the validation
that rejects mismatched keys and values at the call site.

A descriptor is one of:
  - None: any value is accepted
  - a Python class: isinstance() check (bool is NOT accepted for int)
  - a DataType member, or its name as a string ("INT", "string", ...)
"""

from datetime import date
from enum import Enum
from typing import Any, Optional, Union

from indexing.errors import TypeMismatchError


class DataType(Enum):
    """Column-style data types usable as map key/value types."""
    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"


TypeSpec = Union[None, type, DataType, str]


def type_from_string(type_str: str) -> DataType:
    """Convert a string like 'INT' to a DataType enum member."""
    normalized = type_str.strip().upper()
    try:
        return DataType(normalized)
    except ValueError:
        raise ValueError(f"Unknown data type: {type_str!r}. "
                         f"Valid types: {[t.value for t in DataType]}")


def resolve_type(spec: TypeSpec) -> Optional[Union[type, DataType]]:
    """Normalize a type descriptor; strings become DataType members."""
    if spec is None or isinstance(spec, (type, DataType)):
        return spec
    if isinstance(spec, str):
        return type_from_string(spec)
    raise ValueError(f"Invalid type descriptor: {spec!r}")


def validate(value: Any, expected: Optional[Union[type, DataType]]) -> bool:
    """
    Check if a Python value is compatible with the given descriptor.
    Returns True if valid, False otherwise.
    """
    if expected is None:
        return True

    if isinstance(expected, type):
        if isinstance(value, bool) and expected is not bool and issubclass(expected, int):
            return False
        return isinstance(value, expected)

    if expected == DataType.INT:
        return isinstance(value, int) and not isinstance(value, bool)
    elif expected == DataType.FLOAT:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    elif expected == DataType.STRING:
        return isinstance(value, str)
    elif expected == DataType.BOOLEAN:
        return isinstance(value, bool)
    elif expected == DataType.DATE:
        return isinstance(value, date)
    return False


def check(value: Any, expected: Optional[Union[type, DataType]], role: str) -> None:
    """Raise TypeMismatchError unless value matches the descriptor."""
    if not validate(value, expected):
        raise TypeMismatchError(value, expected, role)
