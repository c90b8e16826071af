"""Turn a list of records into typed column arrays."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import pyarrow as pa

import lakeshelf.coercion as coercion
import lakeshelf.errors as errors
import lakeshelf.records as records
from lakeshelf.schema import ColumnarSchema, ColumnDefinition
from lakeshelf.types import StorageType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnArray:
    """Values of one column, parallel to its definition."""

    definition: ColumnDefinition
    values: pa.Array

    @property
    def name(self) -> str:
        return self.definition.name

    def __len__(self) -> int:
        return len(self.values)


def check_items(items: Sequence | None, operation: str) -> list:
    """Validate a collection argument and return it as a list.

    Raises:
        ArgumentError: If items is None or empty.
    """
    if items is None:
        raise errors.ArgumentError(operation, "items", "items must not be None")
    item_list = list(items)
    if not item_list:
        raise errors.ArgumentError(operation, "items", "At least one item is required")
    if any(item is None for item in item_list):
        raise errors.ArgumentError(operation, "items", "items must not contain None")
    return item_list


def record_type_of(items: list) -> type:
    """Common type of a non-empty list of records."""
    record_type = type(items[0])
    for item in items[1:]:
        if type(item) is not record_type:
            raise errors.ArgumentError(
                "Materializing columns",
                "items",
                f"All items must be {record_type.__name__}, found {type(item).__name__}",
            )
    return record_type


def materialize(items: Sequence, schema: ColumnarSchema) -> list[ColumnArray]:
    """Build one column array per schema column.

    Columns whose name matches no field of the record type (ignoring case)
    are skipped. Each cell is coerced with ``coercion.coerce_cell``, which
    substitutes the column's zero value instead of failing.

    Args:
        items: Records of a single dataclass or pydantic model type.
        schema: Columns to produce, in output order.

    Returns:
        Column arrays in schema order.

    Raises:
        ArgumentError: If items is None, empty or mixes record types.
    """
    item_list = check_items(items, "Materializing columns")
    if schema is None:
        raise errors.ArgumentError("Materializing columns", "schema", "schema must not be None")
    record_type = record_type_of(item_list)
    fields = records.field_lookup(record_type)

    columns = []
    for definition in schema.columns:
        descriptor = fields.get(definition.name.lower())
        if descriptor is None:
            logger.debug(
                "Skipping column '%s': no matching field on %s",
                definition.name,
                record_type.__name__,
            )
            continue

        cells = [
            coercion.coerce_cell(getattr(item, descriptor.name), definition)
            for item in item_list
        ]
        columns.append(ColumnArray(definition, _to_arrow(cells, definition)))

    return columns


def _to_arrow(cells: list, definition: ColumnDefinition) -> pa.Array:
    if definition.storage_type is StorageType.UUID:
        cells = [cell.bytes if cell is not None else None for cell in cells]
    return pa.array(cells, type=definition.arrow_type)
