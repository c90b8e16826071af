"""Columnar schema definitions and schema building.

A schema is an ordered list of column definitions. Order matters: the
writer emits columns positionally and the reader addresses them by name,
so the same logical schema must keep the same order on both sides.

Schemas come from one of two sources, chosen by the caller:

- ``InferredSchema``: derived from the record type's field descriptors.
- ``ExplicitSchema``: built by a caller-supplied factory, used as-is.

Example:
    schema = build_schema(Reading)

    custom = ExplicitSchema(
        factory=lambda: ColumnarSchema.of(
            ColumnDefinition(name="sensor", storage_type=StorageType.INT32),
        )
    )
    schema = build_schema(Reading, custom)
"""

from __future__ import annotations

from typing import Callable, Literal

import pyarrow as pa
import pydantic as pdt

import lakeshelf.errors as errors
import lakeshelf.records as records
from lakeshelf.types import StorageType

RECORD_METADATA_KEY = b"lakeshelf.record"


class ColumnDefinition(pdt.BaseModel, strict=True, frozen=True, extra="forbid"):
    """A named, typed, nullable column."""

    name: str
    storage_type: StorageType
    nullable: bool = True

    @property
    def arrow_type(self) -> pa.DataType:
        return self.storage_type.arrow_type

    def to_arrow(self) -> pa.Field:
        return pa.field(self.name, self.arrow_type, nullable=self.nullable)

    @classmethod
    def from_descriptor(cls, descriptor: records.FieldDescriptor) -> ColumnDefinition:
        return cls(
            name=descriptor.name,
            storage_type=descriptor.storage_type,
            nullable=descriptor.nullable,
        )


class ColumnarSchema(pdt.BaseModel, strict=True, frozen=True, extra="forbid"):
    """Ordered sequence of column definitions."""

    columns: tuple[ColumnDefinition, ...]

    @pdt.model_validator(mode="after")
    def validate_columns(self) -> ColumnarSchema:
        """Ensure at least one column and no duplicate (case-insensitive) names."""
        if not self.columns:
            raise errors.SchemaError(
                context="Validating columnar schema",
                cause="Schema has no columns",
                fix="Define at least one column",
            )
        seen: set[str] = set()
        for column in self.columns:
            key = column.name.lower()
            if key in seen:
                raise errors.SchemaError(
                    context="Validating columnar schema",
                    cause=f"Duplicate column name '{column.name}' (names are case-insensitive)",
                    fix="Give every column a unique name",
                )
            seen.add(key)
        return self

    @classmethod
    def of(cls, *columns: ColumnDefinition) -> ColumnarSchema:
        return cls(columns=tuple(columns))

    @property
    def names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> ColumnDefinition | None:
        """Find a column by name, ignoring case."""
        key = name.lower()
        for column in self.columns:
            if column.name.lower() == key:
                return column
        return None

    def select(self, names: list[str]) -> ColumnarSchema:
        """Sub-schema with the named columns, in this schema's order."""
        wanted = {name.lower() for name in names}
        return ColumnarSchema(
            columns=tuple(c for c in self.columns if c.name.lower() in wanted)
        )

    def to_arrow(self, record_type: type | None = None) -> pa.Schema:
        metadata = None
        if record_type is not None:
            metadata = {RECORD_METADATA_KEY: records.type_name(record_type).encode()}
        return pa.schema([column.to_arrow() for column in self.columns], metadata=metadata)

    @classmethod
    def from_arrow(cls, schema: pa.Schema) -> ColumnarSchema:
        """Describe a schema read back from a Parquet file."""
        return cls(
            columns=tuple(
                ColumnDefinition(
                    name=field.name,
                    storage_type=StorageType.from_arrow(field.type),
                    nullable=field.nullable,
                )
                for field in schema
            )
        )


class InferredSchema(pdt.BaseModel, frozen=True, extra="forbid"):
    """Derive the schema from the record type's fields."""

    kind: Literal["inferred"] = "inferred"


class ExplicitSchema(pdt.BaseModel, frozen=True, extra="forbid"):
    """Use the schema returned by a caller-supplied factory."""

    kind: Literal["explicit"] = "explicit"
    factory: Callable[[], ColumnarSchema]

    @classmethod
    def of(cls, schema: ColumnarSchema) -> ExplicitSchema:
        return cls(factory=lambda: schema)


SchemaSource = InferredSchema | ExplicitSchema


def build_schema(
    record_type: type,
    source: SchemaSource | ColumnarSchema | None = None,
) -> ColumnarSchema:
    """Build the columnar schema for a record type.

    Args:
        record_type: Dataclass or pydantic model class.
        source: Where the schema comes from. Defaults to inference; a bare
            ColumnarSchema is treated as an explicit schema.

    Returns:
        ColumnarSchema in field declaration order (or the explicit order).

    Raises:
        NoSerializableFieldsError: If inference finds no eligible fields.
        ArgumentError: If record_type is not a record type.
    """
    if isinstance(source, ColumnarSchema):
        return source
    if isinstance(source, ExplicitSchema):
        return source.factory()

    descriptors = records.describe_record(record_type)
    if not descriptors:
        raise errors.NoSerializableFieldsError(record_type.__name__)
    return ColumnarSchema(
        columns=tuple(ColumnDefinition.from_descriptor(d) for d in descriptors)
    )
