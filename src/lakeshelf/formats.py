"""Format classes for serializing records.

Each format class owns its serialization logic. The storage context
delegates byte conversion to a format instance and only moves bytes.
"""

from __future__ import annotations

import abc
from collections.abc import Sequence
from typing import Any, ClassVar, Literal

from typing_extensions import override

import pydantic as pdt
import pydantic_core

import lakeshelf.errors as errors
import lakeshelf.mapping as mapping
import lakeshelf.materialize as materialize
import lakeshelf.records as records
import lakeshelf.rowgroup as rowgroup
import lakeshelf.schema as schema_mod


class BaseFormat(abc.ABC, pdt.BaseModel, frozen=True, strict=True, extra="forbid"):
    """Abstract base for record formats.

    Concrete formats turn records into bytes and back. ``extension`` and
    ``content_type`` are used when naming and uploading files.
    """

    kind: str

    extension: ClassVar[str]
    content_type: ClassVar[str]

    @abc.abstractmethod
    def serialize(self, items: Sequence[Any]) -> bytes:
        """Serialize a collection of records.

        Args:
            items: Records of one dataclass or pydantic model type.

        Returns:
            Encoded bytes, ready to upload.
        """
        ...

    def serialize_one(self, item: Any) -> bytes:
        """Serialize a single record."""
        if item is None:
            raise errors.ArgumentError(f"Serializing {self.kind}", "item", "item must not be None")
        return self.serialize([item])

    @abc.abstractmethod
    def deserialize(self, data: bytes, record_type: type) -> list:
        """Deserialize all records from ``data``.

        Args:
            data: Encoded bytes as produced by ``serialize``.
            record_type: Type to construct for each decoded record.

        Returns:
            Decoded records; empty if nothing decodes.
        """
        ...

    @abc.abstractmethod
    def deserialize_one(self, data: bytes, record_type: type) -> Any:
        """Deserialize the first record from ``data``."""
        ...

    def with_extension(self, file_name: str) -> str:
        """Append this format's extension unless already present (ignoring case)."""
        if file_name.lower().endswith(self.extension):
            return file_name
        return file_name + self.extension


def _check_data(data: bytes | None, kind: str) -> bytes:
    if data is None:
        raise errors.ArgumentError(f"Deserializing {kind}", "data", "data must not be None")
    return bytes(data)


def _restore_nulls(entry: Any, record_type: type) -> Any:
    """Put back the Optional fields that were omitted because they were None."""
    if not isinstance(entry, dict) or not records.is_record_type(record_type):
        return entry
    restored = dict(entry)
    for descriptor in records.describe_record(record_type):
        _, optional, _ = mapping.unwrap(descriptor.annotation)
        if optional and not descriptor.has_default:
            restored.setdefault(descriptor.name, None)
    return restored


class JsonFormat(BaseFormat):
    """Indented JSON with null fields omitted.

    Records are validated through a pydantic ``TypeAdapter`` so dataclasses
    and pydantic models are handled the same way.
    """

    kind: Literal["json"] = "json"
    indent: int | None = 2
    exclude_none: bool = True

    extension: ClassVar[str] = ".json"
    content_type: ClassVar[str] = "application/json"

    @override
    def serialize(self, items: Sequence[Any]) -> bytes:
        """Serialize records as a JSON array."""
        if items is None:
            raise errors.ArgumentError("Serializing json", "items", "items must not be None")
        item_list = list(items)
        adapter = pdt.TypeAdapter(list[type(item_list[0])] if item_list else list[Any])
        return adapter.dump_json(item_list, indent=self.indent, exclude_none=self.exclude_none)

    @override
    def deserialize(self, data: bytes, record_type: type) -> list:
        """Decode a JSON array, or a single JSON object as a one-item list.

        Raises:
            DecodeError: If the data is not valid JSON or does not fit ``record_type``.
        """
        payload = self._parse(data, record_type)
        if payload is None:
            return []
        if not isinstance(payload, list):
            payload = [payload]
        payload = [_restore_nulls(entry, record_type) for entry in payload]
        return self._validate(pdt.TypeAdapter(list[record_type]), payload, record_type)

    @override
    def deserialize_one(self, data: bytes, record_type: type) -> Any:
        """Decode the first array element, or the whole object. None if empty."""
        payload = self._parse(data, record_type)
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if payload is None:
            return None
        return self._validate(pdt.TypeAdapter(record_type), _restore_nulls(payload, record_type), record_type)

    def _parse(self, data: bytes, record_type: type) -> Any:
        raw = _check_data(data, self.kind)
        if not raw.strip():
            return None
        try:
            return pydantic_core.from_json(raw)
        except ValueError as e:
            raise errors.DecodeError(self.kind, record_type.__name__, f"Invalid JSON: {e}") from e

    def _validate(self, adapter: pdt.TypeAdapter, payload: Any, record_type: type) -> Any:
        try:
            return adapter.validate_python(payload)
        except pdt.ValidationError as e:
            details = "\n".join(
                f"  - {'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise errors.DecodeError(self.kind, record_type.__name__, details) from e


class ParquetFormat(BaseFormat):
    """Single-row-group Parquet.

    The columnar schema is inferred from the record type unless
    ``serialize`` is given an explicit one.
    """

    kind: Literal["parquet"] = "parquet"

    compression: rowgroup.Compression = "snappy"

    extension: ClassVar[str] = ".parquet"
    content_type: ClassVar[str] = "application/vnd.apache.parquet"

    @override
    def serialize(
        self,
        items: Sequence[Any],
        schema: schema_mod.SchemaSource | schema_mod.ColumnarSchema | None = None,
    ) -> bytes:
        """Serialize records into one Parquet row group.

        Args:
            items: At least one record.
            schema: Explicit schema source; inferred from the record type if None.

        Raises:
            ArgumentError: If items is None or empty.
            SchemaError: If no columns can be produced.
        """
        item_list = materialize.check_items(items, "Serializing parquet")
        record_type = materialize.record_type_of(item_list)
        columnar = schema_mod.build_schema(record_type, schema)
        columns = materialize.materialize(item_list, columnar)
        return rowgroup.write_row_group(
            columns,
            columnar,
            compression=self.compression,
            record_type=record_type,
        )

    @override
    def serialize_one(
        self,
        item: Any,
        schema: schema_mod.SchemaSource | schema_mod.ColumnarSchema | None = None,
    ) -> bytes:
        if item is None:
            raise errors.ArgumentError("Serializing parquet", "item", "item must not be None")
        return self.serialize([item], schema)

    @override
    def deserialize(self, data: bytes, record_type: type) -> list:
        """Read all records of the first row group."""
        return rowgroup.read_records(_check_data(data, self.kind), record_type)

    @override
    def deserialize_one(self, data: bytes, record_type: type) -> Any:
        """Read the first record.

        Raises:
            EmptyResultError: If the file holds no rows.
        """
        items = self.deserialize(data, record_type)
        if not items:
            raise errors.EmptyResultError(f"Parquet data for '{record_type.__name__}'")
        return items[0]

