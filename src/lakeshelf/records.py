"""Field descriptors for record types.

A record type is a dataclass or a pydantic model. Its eligible fields
(the ones that can be both read and set through the constructor) are
described once per type and cached; declaration order is preserved
because columns are written in that order.
"""

from __future__ import annotations

import dataclasses
import typing
from dataclasses import dataclass
from functools import cache

import pydantic as pdt

import lakeshelf.errors as errors
import lakeshelf.mapping as mapping
from lakeshelf.types import StorageType


@dataclass(frozen=True)
class FieldDescriptor:
    """A named, typed field of a record type."""

    name: str
    annotation: object
    python_type: object  # annotation without Optional/Annotated wrappers
    storage_type: StorageType
    nullable: bool
    is_enum: bool
    has_default: bool

    @classmethod
    def from_annotation(cls, name: str, annotation: object, has_default: bool) -> FieldDescriptor:
        storage_type, nullable = mapping.map_field_type(annotation)
        python_type, _, _ = mapping.unwrap(annotation)
        return cls(
            name=name,
            annotation=annotation,
            python_type=python_type,
            storage_type=storage_type,
            nullable=nullable,
            is_enum=mapping.is_enum_type(python_type),
            has_default=has_default,
        )


def is_record_type(record_type: object) -> bool:
    """True for dataclass types and pydantic model classes."""
    if not isinstance(record_type, type):
        return False
    return dataclasses.is_dataclass(record_type) or issubclass(record_type, pdt.BaseModel)


@cache
def describe_record(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Describe the eligible fields of a record type in declaration order.

    Args:
        record_type: A dataclass or pydantic model class.

    Returns:
        Tuple of field descriptors. May be empty; schema building decides
        whether that is an error.

    Raises:
        ArgumentError: If record_type is not a dataclass or pydantic model.
    """
    if not is_record_type(record_type):
        raise errors.ArgumentError(
            operation="Describing record type",
            argument="record_type",
            cause=f"{record_type!r} is not a dataclass or pydantic model",
        )

    if issubclass(record_type, pdt.BaseModel):
        return tuple(
            FieldDescriptor.from_annotation(
                name,
                _pydantic_annotation(info),
                has_default=not info.is_required(),
            )
            for name, info in record_type.model_fields.items()
        )

    hints = typing.get_type_hints(record_type, include_extras=True)
    descriptors = []
    for field in dataclasses.fields(record_type):
        # init=False fields cannot be set through the constructor
        if not field.init:
            continue
        has_default = (
            field.default is not dataclasses.MISSING
            or field.default_factory is not dataclasses.MISSING
        )
        descriptors.append(
            FieldDescriptor.from_annotation(field.name, hints[field.name], has_default)
        )
    return tuple(descriptors)


def _pydantic_annotation(info: pdt.fields.FieldInfo) -> object:
    # pydantic moves top-level Annotated metadata into FieldInfo.metadata
    if info.metadata:
        return typing.Annotated[(info.annotation, *info.metadata)]
    return info.annotation


def field_lookup(record_type: type) -> dict[str, FieldDescriptor]:
    """Map lower-cased field names to descriptors."""
    return {d.name.lower(): d for d in describe_record(record_type)}


def type_name(record_type: type) -> str:
    return f"{record_type.__module__}.{record_type.__qualname__}"
