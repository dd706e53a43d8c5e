"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from .schema import AvroType, EnumType, FieldSchema, MapType, RecordSchema
from collections.abc import Mapping, Sequence
from dataclasses import Field, fields, is_dataclass, MISSING
from enum import Enum
from functools import lru_cache
from typing import Final, get_args, get_origin, get_type_hints, TYPE_CHECKING, Union

import datetime
import types
import uuid

if TYPE_CHECKING:
    from _typeshed import DataclassInstance
else:

    class DataclassInstance:
        ...


class UnsupportedAnnotation(NotImplementedError):
    ...


class UnderspecifiedAnnotation(UnsupportedAnnotation):
    ...


sequence_types: Final = frozenset({tuple, list, Sequence})
mapping_types: Final = frozenset({dict, Mapping})
union_types: Final = frozenset({Union, types.UnionType})


class _SchemaContext:
    """Named types already emitted, later uses refer to them by name."""

    def __init__(self) -> None:
        self.names: set[str] = set()

    def claim(self, name: str) -> bool:
        if name in self.names:
            return False
        self.names.add(name)
        return True


def _record_type(record_type: type, context: _SchemaContext) -> RecordSchema | str:
    name = record_type.__name__
    if not context.claim(name):
        return name
    hints = get_type_hints(record_type)
    return {
        "name": name,
        "type": "record",
        "fields": [_field_schema(field, hints[field.name], context) for field in fields(record_type)],
    }


def _enum_type(field: Field, type_: type[Enum], context: _SchemaContext) -> EnumType | str:
    if not context.claim(type_.__name__):
        return type_.__name__
    enum_dict: EnumType = {
        "name": type_.__name__,
        "type": "enum",
        "symbols": [value.value for value in type_],
    }
    if isinstance(field.default, type_):
        enum_dict["default"] = field.default.value
    return enum_dict


def _field_type_array(field: Field, origin: object, type_: object, context: _SchemaContext) -> AvroType:
    if origin is tuple:
        try:
            inner_type, ellipsis = get_args(type_)
        except ValueError as e:
            raise UnsupportedAnnotation("Only homogenous tuples are supported") from e
        if ellipsis is not Ellipsis:
            raise UnsupportedAnnotation("Only homogenous tuples are supported")
    else:
        (inner_type,) = get_args(type_)

    return {
        "type": "array",
        "items": _field_type(field, inner_type, context),
    }


def _field_type(  # pylint: disable=too-many-return-statements
    field: Field,
    type_: object,
    context: _SchemaContext,
) -> AvroType:
    # Handle primitives.
    if type_ is bool:
        return "boolean"
    if type_ is str:
        return "string"
    if type_ is int:
        int_type = field.metadata.get("type", "int")
        if int_type not in ("int", "long"):
            raise UnsupportedAnnotation(f"Invalid avro type for int: {int_type!r}")
        return int_type  # type: ignore[no-any-return]
    if type_ is float:
        return "double"
    if type_ is bytes:
        return "bytes"
    if type_ is type(None) or type_ is None:  # noqa: E721
        return "null"

    # Handle logical types.
    if type_ is datetime.datetime:
        return {
            "logicalType": "timestamp-millis",
            "type": "long",
        }
    if type_ is datetime.date:
        return {
            "logicalType": "date",
            "type": "int",
        }
    if type_ is uuid.UUID:
        return {
            "logicalType": "uuid",
            "type": "string",
        }

    if isinstance(type_, type) and is_dataclass(type_):
        return _record_type(type_, context)

    if isinstance(type_, type) and issubclass(type_, Enum):
        return _enum_type(field, type_, context)

    origin = get_origin(type_)

    if origin in union_types:
        return [_field_type(field, unit, context) for unit in get_args(type_)]  # type: ignore[misc]

    if origin in sequence_types:
        return _field_type_array(field, origin, type_, context)
    if type_ in sequence_types:
        raise UnderspecifiedAnnotation("Inner type must be specified for sequence types")

    if origin in mapping_types:
        args = get_args(type_)
        if len(args) != 2:
            raise UnderspecifiedAnnotation("Key and value types must be specified for map types")
        if args[0] is not str:
            raise UnsupportedAnnotation("Key type must be str")
        map_dict: MapType = {
            "type": "map",
            "values": _field_type(field, args[1], context),
        }
        return map_dict
    if type_ in mapping_types:
        raise UnderspecifiedAnnotation("Key and value types must be specified for map types")

    raise UnsupportedAnnotation(
        f"Found an unknown type {type_!r} while assembling Avro schema for the field "
        f"{field.name!r}. The Avro dataclasses implementation likely needs to be "
        f"updated to support this."
    )


def transform_default(default: object) -> object:
    if isinstance(default, Enum):
        return default.value
    if isinstance(default, tuple):
        return [transform_default(value) for value in default]
    if isinstance(default, list):
        return [transform_default(value) for value in default]
    if isinstance(default, dict):
        return {key: transform_default(value) for key, value in default.items()}
    if isinstance(default, uuid.UUID):
        return str(default)
    return default


def _field_schema(field: Field, type_: object, context: _SchemaContext) -> FieldSchema:
    avro_type = _field_type(field, type_, context)
    schema: FieldSchema = {
        "name": field.name,
        "type": avro_type,
    }
    if field.default is not MISSING:
        default = field.default
    elif field.default_factory is not MISSING:
        default = field.default_factory()
    else:
        return schema

    # A union default must match the first branch of the union.
    if default is None and isinstance(avro_type, list) and "null" in avro_type:
        schema["type"] = ["null", *(unit for unit in avro_type if unit != "null")]
    return {**schema, "default": transform_default(default)}  # type: ignore[typeddict-item]


def field_schema(field: Field, type_: object | None = None) -> FieldSchema:
    return _field_schema(field, field.type if type_ is None else type_, _SchemaContext())


@lru_cache
def record_schema(record_type: type[DataclassInstance], namespace: str | None = None) -> RecordSchema:
    if not is_dataclass(record_type):
        raise UnsupportedAnnotation(f"{record_type!r} is not a dataclass")
    schema = _record_type(record_type, _SchemaContext())
    assert isinstance(schema, dict)
    if namespace:
        return {**schema, "namespace": namespace}
    return schema
