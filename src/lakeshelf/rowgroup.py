"""Single-row-group Parquet writing and reading.

The writer always produces exactly one row group; the reader only ever
opens row group 0. Files written by other tools with more row groups are
read partially, without error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal

import pyarrow as pa
import pyarrow.parquet as pq
import pydantic as pdt

import lakeshelf.coercion as coercion
import lakeshelf.errors as errors
import lakeshelf.records as records
from lakeshelf.materialize import ColumnArray
from lakeshelf.schema import ColumnarSchema, ColumnDefinition
from lakeshelf.types import StorageType

logger = logging.getLogger(__name__)

Compression = Literal["snappy", "gzip", "zstd", "none"]


def write_row_group(
    columns: list[ColumnArray],
    schema: ColumnarSchema,
    compression: Compression = "snappy",
    record_type: type | None = None,
) -> bytes:
    """Write column arrays as one row group of a Parquet file.

    Args:
        columns: Materialized columns, all of the same length.
        schema: Schema the columns were materialized from; fixes column order.
        compression: Parquet compression codec.
        record_type: If given, its qualified name is stored in the schema metadata.

    Returns:
        The complete Parquet file.

    Raises:
        SchemaError: If no column is left to write.
    """
    if not columns:
        raise errors.SchemaError(
            context="Writing Parquet row group",
            cause="None of the schema columns match a field of the record type",
            fix="Check the explicit schema's column names against the record's fields",
        )

    by_name = {column.name.lower(): column for column in columns}
    written = schema.select(list(by_name))
    arrays = [by_name[definition.name.lower()].values for definition in written.columns]

    table = pa.Table.from_arrays(arrays, schema=written.to_arrow(record_type))

    sink = pa.BufferOutputStream()
    pq.write_table(
        table,
        sink,
        row_group_size=max(table.num_rows, 1),
        compression=compression if compression != "none" else None,
    )
    return sink.getvalue().to_pybytes()


def read_schema(data: bytes) -> ColumnarSchema:
    """Columnar schema embedded in a Parquet file."""
    return ColumnarSchema.from_arrow(pq.read_schema(pa.BufferReader(data)))


def read_row_group(data: bytes, names: Iterable[str] | None = None) -> list[ColumnArray]:
    """Read the columns of row group 0.

    Args:
        data: Complete Parquet file.
        names: Columns to read, matched ignoring case. All columns if None.

    Returns:
        Column arrays in file order. Empty if the file has no row groups.
    """
    parquet_file = pq.ParquetFile(pa.BufferReader(data))
    arrow_schema = parquet_file.schema_arrow

    selected = [field for field in arrow_schema]
    if names is not None:
        wanted = {name.lower() for name in names}
        selected = [field for field in selected if field.name.lower() in wanted]

    if parquet_file.num_row_groups == 0 or not selected:
        return []
    if parquet_file.num_row_groups > 1:
        logger.debug(
            "Parquet file has %d row groups, reading only the first",
            parquet_file.num_row_groups,
        )

    table = parquet_file.read_row_group(0, columns=[field.name for field in selected])
    return [
        ColumnArray(
            ColumnDefinition(
                name=field.name,
                storage_type=StorageType.from_arrow(field.type),
                nullable=field.nullable,
            ),
            table.column(field.name).combine_chunks(),
        )
        for field in selected
    ]


def pivot(columns: list[ColumnArray]) -> list[dict[str, object]]:
    """Turn column arrays into one name-to-value mapping per row.

    Columns of unequal length are tolerated: each column only fills the
    rows it has values for.
    """
    rows: list[dict[str, object]] = []
    for column in columns:
        for index, value in enumerate(column.values.to_pylist()):
            while index >= len(rows):
                rows.append({})
            rows[index][column.name] = value
    return rows


def hydrate(rows: list[dict[str, object]], record_type: type) -> list:
    """Construct records from row mappings.

    Keys are matched to fields ignoring case. ``None`` values are treated
    as missing. Conversion failures raise ``HydrationError``.
    """
    descriptors = records.describe_record(record_type)
    return [_hydrate_one(row, record_type, descriptors) for row in rows]


def _hydrate_one(
    row: dict[str, object],
    record_type: type,
    descriptors: tuple[records.FieldDescriptor, ...],
) -> object:
    values = {key.lower(): value for key, value in row.items()}
    kwargs: dict[str, object] = {}
    for descriptor in descriptors:
        value = values.get(descriptor.name.lower())
        if value is not None:
            kwargs[descriptor.name] = coercion.to_field(value, descriptor, record_type)
        elif not descriptor.has_default:
            kwargs[descriptor.name] = coercion.default_for(descriptor)

    if issubclass(record_type, pdt.BaseModel):
        # values are already converted; skip a second validation pass
        return record_type.model_construct(**kwargs)
    return record_type(**kwargs)


def read_records(data: bytes, record_type: type) -> list:
    """Read row group 0 of a Parquet file into records of ``record_type``."""
    fields = records.field_lookup(record_type)
    columns = read_row_group(data, names=[d.name for d in fields.values()])
    return hydrate(pivot(columns), record_type)
