"""Value coercion between record fields and column cells.

Writing is lenient: ``coerce_cell`` never raises, a cell that cannot be
converted becomes the column's zero value. Reading is strict: ``to_field``
raises ``HydrationError`` so files that drifted from the record type are
visible to the caller.
"""

from __future__ import annotations

import decimal
import enum
import logging
import numbers
import typing
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pydantic as pdt

import lakeshelf.errors as errors
from lakeshelf.records import FieldDescriptor
from lakeshelf.schema import ColumnDefinition
from lakeshelf.types import DECIMAL_PRECISION, DECIMAL_SCALE, UUID_BYTES, ZERO_VALUES, StorageType

logger = logging.getLogger(__name__)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_DECIMAL_QUANTUM = Decimal(1).scaleb(-DECIMAL_SCALE)
_DECIMAL_CONTEXT = decimal.Context(prec=DECIMAL_PRECISION, traps=[decimal.InvalidOperation])

_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no"})

_CONTAINER_TYPES = (dict, list, set, frozenset, tuple)


def zero_value(storage_type: StorageType, nullable: bool = False) -> object:
    """Default cell for a missing or unconvertible value."""
    if storage_type is StorageType.STRING:
        return None if nullable else ""
    if storage_type is StorageType.BYTES and nullable:
        return None
    return ZERO_VALUES.get(storage_type)


def coerce_cell(value: object, column: ColumnDefinition) -> object:
    """Convert a record value into a cell for ``column``.

    Null values become null in nullable columns and the zero value
    otherwise. Conversion failures are logged at debug level and replaced
    by the zero value.
    """
    if value is None:
        return None if column.nullable else zero_value(column.storage_type)
    try:
        return to_storage(value, column.storage_type)
    except Exception as exc:
        logger.debug(
            "Column '%s': cannot convert %s to %s (%s), using zero value",
            column.name,
            type(value).__name__,
            column.storage_type.value,
            exc,
        )
        return zero_value(column.storage_type, column.nullable)


def to_storage(value: object, storage_type: StorageType) -> object:
    """Convert a non-null value to the Python type of ``storage_type``.

    Raises:
        TypeError, ValueError, ArithmeticError: If no conversion applies.
    """
    if isinstance(value, enum.Enum) and storage_type is StorageType.STRING:
        return value.name

    if type(value) is storage_type.python_type:
        return _normalize(value, storage_type)

    if storage_type is StorageType.STRING:
        return str(value)

    return _normalize(_CONVERTERS[storage_type](value), storage_type)


def _normalize(value: object, storage_type: StorageType) -> object:
    """Bring a correctly-typed value into the column's representable range."""
    if storage_type is StorageType.INT32:
        if not INT32_MIN <= value <= INT32_MAX:
            raise OverflowError(f"{value} out of range for int32")
    elif storage_type is StorageType.INT64:
        if not INT64_MIN <= value <= INT64_MAX:
            raise OverflowError(f"{value} out of range for int64")
    elif storage_type is StorageType.DECIMAL:
        if not value.is_finite():
            raise ValueError(f"{value} is not a finite decimal")
        return value.quantize(_DECIMAL_QUANTUM, context=_DECIMAL_CONTEXT)
    elif storage_type is StorageType.TIMESTAMP:
        if value.tzinfo is not None:
            # naive timestamp columns hold UTC wall time
            return value.astimezone(timezone.utc).replace(tzinfo=None)
    elif storage_type is StorageType.TIMESTAMP_TZ:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
    return value


def _to_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, (float, Decimal)):
        # round-half-even, raises on nan/inf
        return int(round(value))
    if isinstance(value, str):
        return int(value.strip())
    return int(value)


def _to_float(value: object) -> float:
    if isinstance(value, str):
        return float(value.strip())
    return float(value)


def _to_bool(value: object) -> bool:
    if isinstance(value, numbers.Number):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"{value!r} is not a boolean")
    raise TypeError(f"cannot convert {type(value).__name__} to bool")


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, numbers.Integral):
        return Decimal(int(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(f"cannot convert {type(value).__name__} to decimal")


def _to_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return datetime.combine(value.date(), value.timetz())
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip())
    raise TypeError(f"cannot convert {type(value).__name__} to datetime")


def _to_uuid(value: object) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != UUID_BYTES:
            raise ValueError(f"expected {UUID_BYTES} bytes for a UUID, got {len(raw)}")
        return uuid.UUID(bytes=raw)
    if isinstance(value, str):
        return uuid.UUID(value.strip())
    raise TypeError(f"cannot convert {type(value).__name__} to UUID")


def _to_bytes(value: object) -> bytes:
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, uuid.UUID):
        return value.bytes
    raise TypeError(f"cannot convert {type(value).__name__} to bytes")


_CONVERTERS = {
    StorageType.INT32: _to_int,
    StorageType.INT64: _to_int,
    StorageType.FLOAT32: _to_float,
    StorageType.FLOAT64: _to_float,
    StorageType.BOOL: _to_bool,
    StorageType.DECIMAL: _to_decimal,
    StorageType.TIMESTAMP: _to_datetime,
    StorageType.TIMESTAMP_TZ: _to_datetime,
    StorageType.UUID: _to_uuid,
    StorageType.BYTES: _to_bytes,
}


def to_field(value: object, descriptor: FieldDescriptor, record_type: type) -> object:
    """Convert a cell read from a file to the declared type of a field.

    Raises:
        HydrationError: If the value cannot be converted.
    """
    target = descriptor.python_type
    try:
        if descriptor.is_enum:
            return _to_enum(value, target)
        if descriptor.storage_type is StorageType.STRING and target is not str:
            return _from_text(value, descriptor)
        if descriptor.storage_type is StorageType.DECIMAL and isinstance(value, Decimal):
            return value
        return to_storage(value, descriptor.storage_type)
    except (pdt.ValidationError, TypeError, ValueError, ArithmeticError, KeyError) as exc:
        target_name = getattr(target, "__name__", repr(target))
        raise errors.HydrationError(
            type_name=record_type.__name__,
            field=descriptor.name,
            value=value,
            target=target_name,
        ) from exc


def _from_text(value: object, descriptor: FieldDescriptor) -> object:
    """Validate a string cell against a field typed as a literal, union or str-like type."""
    target = descriptor.python_type
    # containers were stored via str(); nothing parses them back
    if target in _CONTAINER_TYPES or typing.get_origin(target) in _CONTAINER_TYPES:
        raise TypeError(f"cannot convert {type(value).__name__} to {target!r}")
    if isinstance(target, type) and isinstance(value, target):
        return value
    return pdt.TypeAdapter(descriptor.annotation).validate_python(value)


def _to_enum(value: object, enum_type: type[enum.Enum]) -> enum.Enum:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        return enum_type[value]
    return enum_type(value)


def default_for(descriptor: FieldDescriptor) -> object:
    """Value for a required field that the file did not provide."""
    if descriptor.nullable:
        return None
    if descriptor.is_enum:
        return next(iter(descriptor.python_type))
    return zero_value(descriptor.storage_type)
