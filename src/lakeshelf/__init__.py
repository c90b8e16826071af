from .errors import (
    ArgumentError,
    EmptyResultError,
    HydrationError,
    LakeshelfError,
    SchemaError,
    StorageError,
)
from .formats import JsonFormat, ParquetFormat
from .schema import ColumnarSchema, ColumnDefinition, ExplicitSchema, InferredSchema, build_schema
from .settings import LakeshelfSettings, load_settings
from .storage import DataLakeContext
from .types import Float32, Float64, Int32, Int64, StorageType, TimestampTZ

__all__ = [
    # types
    "StorageType",
    "Int32",
    "Int64",
    "Float32",
    "Float64",
    "TimestampTZ",
    # schema
    "ColumnarSchema",
    "ColumnDefinition",
    "ExplicitSchema",
    "InferredSchema",
    "build_schema",
    # formats
    "JsonFormat",
    "ParquetFormat",
    # storage
    "DataLakeContext",
    # configs
    "LakeshelfSettings",
    "load_settings",
    # errors
    "LakeshelfError",
    "ArgumentError",
    "SchemaError",
    "HydrationError",
    "EmptyResultError",
    "StorageError",
]
