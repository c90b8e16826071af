"""Map declared field types to column storage types.

Rules are checked in order and the first match wins. ``Optional``
wrappers and ``Annotated`` metadata are stripped before matching:

- ``int``, ``float``, ``Decimal``, ``bool``, ``datetime`` and ``UUID`` are
  value types. They are nullable only when wrapped in ``X | None``.
- ``bytes`` is always nullable.
- Enums are stored as their member name and are nullable only when wrapped.
- Everything else (``str``, containers, classes, unions) is stored as a
  string and is always nullable.
"""

from __future__ import annotations

import enum
import types
import typing
import uuid
from datetime import datetime
from decimal import Decimal

from lakeshelf.types import StorageType

_VALUE_TYPES: tuple[tuple[type, StorageType], ...] = (
    (int, StorageType.INT64),
    (float, StorageType.FLOAT64),
    (Decimal, StorageType.DECIMAL),
    (bool, StorageType.BOOL),
    (datetime, StorageType.TIMESTAMP),
    (uuid.UUID, StorageType.UUID),
)

# Markers only narrow or widen within the family of the declared type
_MARKER_FAMILIES: dict[type, frozenset[StorageType]] = {
    int: frozenset({StorageType.INT32, StorageType.INT64}),
    float: frozenset({StorageType.FLOAT32, StorageType.FLOAT64}),
    datetime: frozenset({StorageType.TIMESTAMP, StorageType.TIMESTAMP_TZ}),
}


def unwrap(annotation: object) -> tuple[object, bool, StorageType | None]:
    """Strip ``Annotated`` and ``Optional`` wrappers.

    Returns:
        (inner type, wrapped in Optional, storage marker from Annotated metadata)
    """
    marker: StorageType | None = None
    optional = False

    while True:
        if typing.get_origin(annotation) is typing.Annotated:
            for meta in annotation.__metadata__:
                if isinstance(meta, StorageType):
                    marker = meta
            annotation = annotation.__origin__
            continue

        if _is_union(annotation):
            args = typing.get_args(annotation)
            members = [arg for arg in args if arg is not type(None)]
            if len(members) != len(args) and len(members) == 1:
                optional = True
                annotation = members[0]
                continue
        break

    return annotation, optional, marker


def _is_union(annotation: object) -> bool:
    origin = typing.get_origin(annotation)
    return origin is typing.Union or origin is types.UnionType


def is_enum_type(annotation: object) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, enum.Enum)


def map_field_type(annotation: object) -> tuple[StorageType, bool]:
    """Map a declared field type to (storage type, nullable).

    Args:
        annotation: Resolved type annotation of a record field.

    Returns:
        Storage type of the column and whether the column accepts nulls.
    """
    base, optional, marker = unwrap(annotation)

    if is_enum_type(base):
        return StorageType.STRING, optional

    for python_type, storage in _VALUE_TYPES:
        if base is python_type:
            if marker is not None and marker in _MARKER_FAMILIES.get(python_type, ()):
                storage = marker
            return storage, optional

    if base is bytes or base is bytearray:
        return StorageType.BYTES, True

    # Reference types
    return StorageType.STRING, True
