"""Tests for single-row-group Parquet writing and reading."""

from __future__ import annotations

from dataclasses import dataclass

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

import lakeshelf.errors as errors
import lakeshelf.materialize as materialize
import lakeshelf.rowgroup as rowgroup
from lakeshelf.schema import RECORD_METADATA_KEY, ColumnarSchema, ColumnDefinition, build_schema
from lakeshelf.types import StorageType


@dataclass
class Measurement:
    station: str
    value: float
    flagged: bool | None = None


def write(items, schema=None, **kwargs) -> bytes:
    schema = schema or build_schema(Measurement)
    columns = materialize.materialize(items, schema)
    return rowgroup.write_row_group(columns, schema, record_type=Measurement, **kwargs)


def parquet_bytes(table: pa.Table, **kwargs) -> bytes:
    sink = pa.BufferOutputStream()
    pq.write_table(table, sink, **kwargs)
    return sink.getvalue().to_pybytes()


ITEMS = [Measurement(f"s{i}", i * 1.5, i % 2 == 0) for i in range(5)]


class TestWriteRowGroup:
    def test_exactly_one_row_group(self):
        data = write(ITEMS)
        metadata = pq.ParquetFile(pa.BufferReader(data)).metadata

        assert metadata.num_row_groups == 1
        assert metadata.num_rows == 5

    def test_record_type_in_metadata(self):
        data = write(ITEMS)
        schema = pq.read_schema(pa.BufferReader(data))
        assert schema.metadata[RECORD_METADATA_KEY].decode().endswith("Measurement")

    def test_same_input_same_bytes(self):
        """Writing is deterministic for the same records."""
        assert write(ITEMS) == write(ITEMS)

    @pytest.mark.parametrize("compression", ["snappy", "gzip", "zstd", "none"])
    def test_compression_codecs(self, compression):
        data = write(ITEMS, compression=compression)
        assert rowgroup.read_records(data, Measurement) == ITEMS

    def test_no_columns_is_an_error(self):
        with pytest.raises(errors.SchemaError):
            rowgroup.write_row_group([], build_schema(Measurement))

    def test_columns_written_in_schema_order(self):
        """Explicit schema order decides file column order."""
        custom = ColumnarSchema.of(
            ColumnDefinition(name="value", storage_type=StorageType.FLOAT64),
            ColumnDefinition(name="station", storage_type=StorageType.STRING),
        )
        data = write(ITEMS, custom)
        assert rowgroup.read_schema(data).names == ["value", "station"]


class TestReadRowGroup:
    def test_read_all_columns(self):
        columns = rowgroup.read_row_group(write(ITEMS))

        assert [c.name for c in columns] == ["station", "value", "flagged"]
        assert columns[0].values.to_pylist() == [f"s{i}" for i in range(5)]
        assert columns[2].definition.storage_type == StorageType.BOOL

    def test_column_selection_ignores_case(self):
        columns = rowgroup.read_row_group(write(ITEMS), names=["VALUE"])
        assert [c.name for c in columns] == ["value"]

    def test_no_selected_columns(self):
        assert rowgroup.read_row_group(write(ITEMS), names=["nothing"]) == []

    def test_only_first_row_group_read(self, caplog):
        """Files with several row groups are read partially without error."""
        table = pa.table({"station": ["a", "b", "c", "d"], "value": [1.0, 2.0, 3.0, 4.0]})
        data = parquet_bytes(table, row_group_size=2)

        with caplog.at_level("DEBUG", logger="lakeshelf.rowgroup"):
            items = rowgroup.read_records(data, Measurement)

        assert [item.station for item in items] == ["a", "b"]
        assert "reading only the first" in caplog.text

    def test_file_without_row_groups(self):
        table = pa.table({"station": pa.array([], pa.string())})
        data = parquet_bytes(table)
        assert rowgroup.read_records(data, Measurement) == []

    def test_read_schema(self):
        schema = rowgroup.read_schema(write(ITEMS))
        assert schema.column("value").storage_type == StorageType.FLOAT64
        assert not schema.column("value").nullable
        assert schema.column("station").nullable


class TestPivot:
    def test_pivot_rows(self):
        rows = rowgroup.pivot(rowgroup.read_row_group(write(ITEMS[:2])))
        assert rows == [
            {"station": "s0", "value": 0.0, "flagged": True},
            {"station": "s1", "value": 1.5, "flagged": False},
        ]

    def test_unequal_lengths_tolerated(self):
        """Shorter columns leave later rows without that key."""
        short = materialize.ColumnArray(
            ColumnDefinition(name="a", storage_type=StorageType.INT64), pa.array([1])
        )
        long = materialize.ColumnArray(
            ColumnDefinition(name="b", storage_type=StorageType.INT64), pa.array([1, 2, 3])
        )
        assert rowgroup.pivot([short, long]) == [{"a": 1, "b": 1}, {"b": 2}, {"b": 3}]


class TestHydrate:
    def test_keys_matched_ignoring_case(self):
        items = rowgroup.hydrate([{"STATION": "x", "Value": 2.0}], Measurement)
        assert items == [Measurement("x", 2.0, None)]

    def test_missing_required_field_gets_zero_value(self):
        """Required fields absent from the file get their zero value."""
        items = rowgroup.hydrate([{"station": "x"}], Measurement)
        assert items == [Measurement("x", 0.0)]

    def test_conversion_failure_raises(self):
        with pytest.raises(errors.HydrationError):
            rowgroup.hydrate([{"station": "x", "value": "high"}], Measurement)

    def test_extra_columns_ignored(self):
        items = rowgroup.hydrate([{"station": "x", "value": 1.0, "other": 5}], Measurement)
        assert items == [Measurement("x", 1.0)]
