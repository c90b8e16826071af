"""Core type definitions for lakeshelf.

PyArrow is the in-memory column format for all Parquet operations.
``StorageType`` names the column types a record field can be stored as;
``Annotated`` aliases carry widths that Python's own types do not.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated

import pyarrow as pa

# Decimal columns use the widest 128-bit layout with a fixed scale
DECIMAL_PRECISION = 38
DECIMAL_SCALE = 18

UUID_BYTES = 16


class StorageType(enum.Enum):
    """Column storage types."""

    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BOOL = "bool"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    TIMESTAMP_TZ = "timestamp_tz"
    UUID = "uuid"
    BYTES = "bytes"
    STRING = "string"

    @property
    def arrow_type(self) -> pa.DataType:
        """PyArrow type used for columns of this storage type."""
        return _ARROW_TYPES[self]()

    @property
    def python_type(self) -> type:
        """Python type of a cell value that needs no conversion."""
        return _PYTHON_TYPES[self]

    @classmethod
    def from_arrow(cls, dtype: pa.DataType) -> StorageType:
        """Best-fit storage type for a column found in a Parquet file.

        Files written by other tools may use types lakeshelf never writes
        (int16, float16, date32, ...). Those map to the nearest family.
        """
        if pa.types.is_int32(dtype):
            return cls.INT32
        if pa.types.is_integer(dtype):
            return cls.INT64
        if pa.types.is_float16(dtype) or pa.types.is_float32(dtype):
            return cls.FLOAT32
        if pa.types.is_floating(dtype):
            return cls.FLOAT64
        if pa.types.is_boolean(dtype):
            return cls.BOOL
        if pa.types.is_decimal(dtype):
            return cls.DECIMAL
        if pa.types.is_timestamp(dtype):
            return cls.TIMESTAMP_TZ if dtype.tz is not None else cls.TIMESTAMP
        if pa.types.is_date(dtype):
            return cls.TIMESTAMP
        if pa.types.is_fixed_size_binary(dtype) and dtype.byte_width == UUID_BYTES:
            return cls.UUID
        if pa.types.is_binary(dtype) or pa.types.is_large_binary(dtype) or pa.types.is_fixed_size_binary(dtype):
            return cls.BYTES
        return cls.STRING


_ARROW_TYPES = {
    StorageType.INT32: pa.int32,
    StorageType.INT64: pa.int64,
    StorageType.FLOAT32: pa.float32,
    StorageType.FLOAT64: pa.float64,
    StorageType.BOOL: pa.bool_,
    StorageType.DECIMAL: lambda: pa.decimal128(DECIMAL_PRECISION, DECIMAL_SCALE),
    StorageType.TIMESTAMP: lambda: pa.timestamp("us"),
    StorageType.TIMESTAMP_TZ: lambda: pa.timestamp("us", tz="UTC"),
    StorageType.UUID: lambda: pa.binary(UUID_BYTES),
    StorageType.BYTES: pa.binary,
    StorageType.STRING: pa.string,
}

_PYTHON_TYPES: dict[StorageType, type] = {
    StorageType.INT32: int,
    StorageType.INT64: int,
    StorageType.FLOAT32: float,
    StorageType.FLOAT64: float,
    StorageType.BOOL: bool,
    StorageType.DECIMAL: Decimal,
    StorageType.TIMESTAMP: datetime,
    StorageType.TIMESTAMP_TZ: datetime,
    StorageType.UUID: uuid.UUID,
    StorageType.BYTES: bytes,
    StorageType.STRING: str,
}

# Zero values for non-nullable columns. Nullable string and binary columns use null instead.
ZERO_VALUES: dict[StorageType, object] = {
    StorageType.INT32: 0,
    StorageType.INT64: 0,
    StorageType.FLOAT32: 0.0,
    StorageType.FLOAT64: 0.0,
    StorageType.BOOL: False,
    StorageType.DECIMAL: Decimal(0),
    StorageType.TIMESTAMP: datetime(1, 1, 1),
    StorageType.TIMESTAMP_TZ: datetime(1, 1, 1, tzinfo=timezone.utc),
    StorageType.UUID: uuid.UUID(int=0),
    StorageType.BYTES: b"",
}

# =============================================================================
# Field width markers
# =============================================================================
# Use these in record annotations where the default mapping is too wide:
#
#     @dataclass
#     class Reading:
#         sensor: Int32
#         value: Float32
#         taken_at: TimestampTZ

Int32 = Annotated[int, StorageType.INT32]
Int64 = Annotated[int, StorageType.INT64]
Float32 = Annotated[float, StorageType.FLOAT32]
Float64 = Annotated[float, StorageType.FLOAT64]
TimestampTZ = Annotated[datetime, StorageType.TIMESTAMP_TZ]
