"""Tests for the JSON and Parquet record formats."""

from __future__ import annotations

import enum
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, NewType

import pyarrow as pa
import pyarrow.parquet as pq
import pydantic as pdt
import pytest

import lakeshelf.errors as errors
import lakeshelf.formats as formats
import lakeshelf.rowgroup as rowgroup
from lakeshelf.schema import ColumnarSchema, ColumnDefinition, ExplicitSchema
from lakeshelf.types import Float32, Int32, StorageType, TimestampTZ


@dataclass
class Item:
    Id: int
    Name: str | None
    Value: float


@dataclass
class TextId:
    Id: str


@dataclass
class IntId:
    Id: int


Label = NewType("Label", str)


@dataclass
class Tagged:
    kind: Literal["a", "b"]
    key: int | str
    label: Label


@dataclass
class FreeText:
    kind: str


@dataclass
class Blob:
    data: bytes


class Priority(enum.Enum):
    LOW = 10
    HIGH = 20


@dataclass
class Everything:
    small: Int32
    big: int
    ratio: Float32
    precise: float
    amount: Decimal
    flag: bool
    seen: datetime
    seen_utc: TimestampTZ
    ident: uuid.UUID
    blob: bytes | None
    text: str
    priority: Priority
    maybe: int | None = None


class Order(pdt.BaseModel):
    order_id: Int32
    customer: str | None = None
    total: Decimal
    priority: Priority = Priority.LOW


@pytest.fixture
def parquet() -> formats.ParquetFormat:
    return formats.ParquetFormat()


@pytest.fixture
def json_format() -> formats.JsonFormat:
    return formats.JsonFormat()


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_json_round_trip(self, json_format):
        """A single record survives JSON serialize then deserialize."""
        item = Item(Id=1, Name="A", Value=1.5)
        data = json_format.serialize_one(item)
        assert json_format.deserialize_one(data, Item) == item

    def test_parquet_ten_records_in_order(self, parquet):
        """Ten records come back from one row group in their original order."""
        items = [Item(Id=i, Name=f"n{i}", Value=i / 2) for i in range(1, 11)]
        result = parquet.deserialize(parquet.serialize(items), Item)

        assert len(result) == 10
        assert [r.Id for r in result] == list(range(1, 11))
        assert result == items

    def test_parquet_null_string(self, parquet):
        """A null nullable string reads back as None, not an error."""
        result = parquet.deserialize_one(parquet.serialize([Item(Id=1, Name=None, Value=0.5)]), Item)
        assert result.Name is None

    def test_parquet_unconvertible_cell_becomes_zero(self, parquet):
        """A value forced into an incompatible column is written as zero."""
        custom = ExplicitSchema.of(
            ColumnarSchema.of(
                ColumnDefinition(name="Id", storage_type=StorageType.INT64, nullable=False)
            )
        )
        data = parquet.serialize([TextId(Id="not a number")], custom)

        assert parquet.deserialize_one(data, IntId) == IntId(Id=0)
        assert parquet.deserialize_one(data, TextId) == TextId(Id="0")


# ---------------------------------------------------------------------------
# Parquet
# ---------------------------------------------------------------------------


class TestParquetFormat:
    def test_all_storage_types_round_trip(self, parquet):
        item = Everything(
            small=-7,
            big=2**40,
            ratio=0.25,
            precise=1 / 3,
            amount=Decimal("12345.678901234567890123"),
            flag=True,
            seen=datetime(2024, 5, 6, 7, 8, 9, 123456),
            seen_utc=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
            ident=uuid.uuid4(),
            blob=b"\x00\x01\x02",
            text="héllo",
            priority=Priority.HIGH,
        )
        result = parquet.deserialize_one(parquet.serialize_one(item), Everything)

        assert result.small == -7
        assert result.big == 2**40
        assert result.ratio == 0.25
        assert result.precise == 1 / 3
        assert result.amount == item.amount
        assert result.flag is True
        assert result.seen == item.seen
        assert result.seen_utc == item.seen_utc
        assert result.ident == item.ident
        assert result.blob == b"\x00\x01\x02"
        assert result.text == "héllo"
        assert result.priority is Priority.HIGH
        assert result.maybe is None

    def test_literal_union_and_newtype_round_trip(self, parquet):
        """String-stored fields typed as Literal, a union or a NewType read back."""
        items = [Tagged(kind="a", key="abc", label=Label("x")), Tagged(kind="b", key="7", label=Label(""))]
        assert parquet.deserialize(parquet.serialize(items), Tagged) == items

    def test_value_outside_literal_raises(self, parquet):
        data = parquet.serialize_one(FreeText(kind="z"))

        with pytest.raises(errors.HydrationError) as exc_info:
            parquet.deserialize_one(data, Tagged)

        assert exc_info.value.field == "kind"

    def test_required_bytes_column_never_null(self, parquet):
        """An unconvertible cell in a non-nullable binary column is written as empty bytes."""
        custom = ColumnarSchema.of(
            ColumnDefinition(name="data", storage_type=StorageType.BYTES, nullable=False)
        )
        data = parquet.serialize([Blob(data="text"), Blob(data=b"\x01")], custom)

        assert pq.read_schema(pa.BufferReader(data)).field("data").nullable is False
        assert parquet.deserialize(data, Blob) == [Blob(data=b""), Blob(data=b"\x01")]

    def test_enum_written_as_name(self, parquet):
        """Enum columns hold the member name."""
        data = parquet.serialize_one(Order(order_id=1, total=Decimal(1), priority=Priority.HIGH))
        columns = {c.name: c for c in rowgroup.read_row_group(data)}
        assert columns["priority"].values.to_pylist() == ["HIGH"]

    def test_pydantic_model_round_trip(self, parquet):
        orders = [
            Order(order_id=1, customer="ann", total=Decimal("9.99")),
            Order(order_id=2, total=Decimal("0.01"), priority=Priority.HIGH),
        ]
        result = parquet.deserialize(parquet.serialize(orders), Order)
        assert result == orders

    def test_case_insensitive_field_matching(self, parquet):
        """Columns named in a different case still hydrate the field."""
        custom = ColumnarSchema.of(
            ColumnDefinition(name="ID", storage_type=StorageType.INT64, nullable=False)
        )
        data = parquet.serialize([IntId(Id=5)], custom)
        assert parquet.deserialize(data, IntId) == [IntId(Id=5)]

    def test_empty_items_rejected(self, parquet):
        with pytest.raises(errors.ArgumentError, match="At least one item is required"):
            parquet.serialize([])

    def test_none_items_rejected(self, parquet):
        with pytest.raises(errors.ArgumentError):
            parquet.serialize(None)

    def test_none_data_rejected(self, parquet):
        with pytest.raises(errors.ArgumentError):
            parquet.deserialize(None, Item)

    def test_unmatched_explicit_schema(self, parquet):
        """An explicit schema sharing no column with the record cannot be written."""
        custom = ColumnarSchema.of(ColumnDefinition(name="other", storage_type=StorageType.INT64))
        with pytest.raises(errors.SchemaError):
            parquet.serialize([IntId(Id=1)], custom)

    def test_explicit_schema_subset(self, parquet):
        """Fields left out of an explicit schema read back as their defaults."""
        custom = ColumnarSchema.of(ColumnDefinition(name="Value", storage_type=StorageType.FLOAT64))
        result = parquet.deserialize_one(parquet.serialize([Item(1, "a", 2.5)]), Item)
        assert result == Item(1, "a", 2.5)

        result = parquet.deserialize_one(parquet.serialize([Item(1, "a", 2.5)], custom), Item)
        assert result == Item(Id=0, Name=None, Value=2.5)

    def test_extension_and_content_type(self, parquet):
        assert parquet.with_extension("data") == "data.parquet"
        assert parquet.with_extension("DATA.PARQUET") == "DATA.PARQUET"
        assert parquet.content_type == "application/vnd.apache.parquet"

    def test_format_is_frozen(self, parquet):
        with pytest.raises(pdt.ValidationError):
            parquet.compression = "gzip"


class TestParquetEmptyResult:
    def test_deserialize_one_without_rows(self, parquet):
        """No decoded rows means EmptyResultError for single reads and [] for collections."""
        sink = pa.BufferOutputStream()
        pq.write_table(pa.table({"Id": pa.array([], pa.int64())}), sink)
        data = sink.getvalue().to_pybytes()

        assert parquet.deserialize(data, IntId) == []
        with pytest.raises(errors.EmptyResultError, match="No items found in the file"):
            parquet.deserialize_one(data, IntId)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestJsonFormat:
    def test_null_fields_omitted(self, json_format):
        data = json_format.serialize_one(Item(Id=1, Name=None, Value=1.0))
        assert json.loads(data) == [{"Id": 1, "Value": 1.0}]

    def test_output_is_indented(self, json_format):
        assert b"\n  " in json_format.serialize_one(Item(Id=1, Name="x", Value=1.0))

    def test_deserialize_collection(self, json_format):
        items = [Item(Id=i, Name=None, Value=float(i)) for i in range(3)]
        assert json_format.deserialize(json_format.serialize(items), Item) == items

    def test_single_object_payload(self, json_format):
        """A bare object decodes as one item."""
        payload = b'{"Id": 4, "Name": "d", "Value": 2.0}'
        assert json_format.deserialize_one(payload, Item) == Item(4, "d", 2.0)
        assert json_format.deserialize(payload, Item) == [Item(4, "d", 2.0)]

    def test_empty_payloads(self, json_format):
        """Empty input decodes to nothing rather than failing."""
        assert json_format.deserialize_one(b"", Item) is None
        assert json_format.deserialize_one(b"[]", Item) is None
        assert json_format.deserialize_one(b"null", Item) is None
        assert json_format.deserialize(b"  ", Item) == []

    def test_literal_and_union_fields(self, json_format):
        item = Tagged(kind="b", key="abc", label=Label("x"))
        assert json_format.deserialize_one(json_format.serialize_one(item), Tagged) == item

    def test_malformed_json_raises_decode_error(self, json_format):
        with pytest.raises(errors.DecodeError, match="Invalid JSON") as exc_info:
            json_format.deserialize(b'[{"Id": 1,', Item)

        assert "'Item'" in exc_info.value.context

    def test_mismatched_payload_raises_decode_error(self, json_format):
        """Payloads that do not fit the record type name the offending field."""
        payload = b'[{"Id": "one", "Value": 1.0}]'

        with pytest.raises(errors.DecodeError) as exc_info:
            json_format.deserialize(payload, Item)
        assert "0.Id" in exc_info.value.cause

        with pytest.raises(errors.DecodeError):
            json_format.deserialize_one(payload, Item)

    def test_pydantic_model(self, json_format):
        order = Order(order_id=3, total=Decimal("1.50"), priority=Priority.HIGH)
        assert json_format.deserialize_one(json_format.serialize_one(order), Order) == order

    def test_none_item_rejected(self, json_format):
        with pytest.raises(errors.ArgumentError):
            json_format.serialize_one(None)

    def test_extension(self, json_format):
        assert json_format.with_extension("item") == "item.json"
        assert json_format.content_type == "application/json"
