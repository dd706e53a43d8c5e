"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from typing import Literal
from typing_extensions import NotRequired, TypeAlias, TypedDict

Primitive: TypeAlias = Literal["int", "long", "float", "double", "string", "null", "bytes", "boolean"]
LogicalType: TypeAlias = Literal["timestamp-millis", "uuid", "date"]


class TypeObject(TypedDict):
    type: Primitive
    logicalType: LogicalType


class ArrayType(TypedDict):
    type: Literal["array"]
    items: AvroType


class MapType(TypedDict):
    type: Literal["map"]
    values: AvroType
    default: NotRequired[dict]


class EnumType(TypedDict):
    name: str
    type: Literal["enum"]
    symbols: list[str]
    default: NotRequired[str]


TypeUnit: TypeAlias = "Primitive | TypeObject | str"
UnionType: TypeAlias = "list[TypeUnit]"
AvroType: TypeAlias = "TypeUnit | UnionType | RecordSchema | ArrayType | MapType | EnumType"


class FieldSchema(TypedDict):
    name: str
    type: AvroType
    default: NotRequired[str | int | float | bool | list | dict | None]


class RecordSchema(TypedDict):
    name: str
    type: Literal["record"]
    fields: list[FieldSchema]
    namespace: NotRequired[str]
