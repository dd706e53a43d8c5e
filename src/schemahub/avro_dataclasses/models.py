"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields, is_dataclass
from enum import Enum
from functools import lru_cache, partial
from typing import cast, get_args, get_origin, get_type_hints, TYPE_CHECKING, TypeVar, Union

import types
import uuid

if TYPE_CHECKING:
    from _typeshed import DataclassInstance
else:

    class DataclassInstance:
        ...


Parser = Callable[[object], object]


def as_avro_value(value: object) -> object:
    if is_dataclass(value) and not isinstance(value, type):
        return as_avro_dict(value)
    if isinstance(value, Enum):
        return value.value
    # The avro library doesn't handle uuid.UUID, but it handles datetime instances.
    if isinstance(value, uuid.UUID):
        return str(value)
    # The avro library only accepts exactly list for array types.
    if isinstance(value, (tuple, list)):
        return [as_avro_value(item) for item in value]
    if isinstance(value, Mapping):
        return {key: as_avro_value(item) for key, item in value.items()}
    return value


def as_avro_dict(instance: DataclassInstance) -> dict[str, object]:
    return {field.name: as_avro_value(getattr(instance, field.name)) for field in fields(instance)}


def noop(x: object) -> object:
    return x


def from_avro_array(transformation: Parser, values: Iterable[object]) -> tuple[object, ...]:
    return tuple(transformation(value) for value in values)


def from_avro_list(transformation: Parser, values: Iterable[object]) -> list[object]:
    return [transformation(value) for value in values]


def optional_parser(parser: Parser | None) -> Parser | None:
    if parser is None:
        return None

    def parse(value: object) -> object:
        return None if value is None else parser(value)

    return parse


def from_avro_value(type_: object) -> Parser | None:  # pylint: disable=too-many-return-statements
    if isinstance(type_, type):
        if is_dataclass(type_):
            return partial(from_avro_dict, type_)
        if issubclass(type_, Enum):
            return type_
        # With the avro library we need to manually instantiate UUID.
        if issubclass(type_, uuid.UUID):
            return cast(Parser, uuid.UUID)

    origin = get_origin(type_)

    if origin is tuple:
        inner_type, ellipsis = get_args(type_)
        assert ellipsis is Ellipsis
        inner_transformation = from_avro_value(inner_type)
        return (
            tuple  # type: ignore[return-value]
            if inner_transformation is None
            else partial(from_avro_array, inner_transformation)
        )

    if origin is list:
        (inner_type,) = get_args(type_)
        inner_transformation = from_avro_value(inner_type)
        return None if inner_transformation is None else partial(from_avro_list, inner_transformation)

    # Only the special case of nullable types is supported for unions.
    if origin is Union or origin is types.UnionType:
        try:
            a, b = get_args(type_)
        except ValueError:
            raise NotImplementedError("Cannot handle arbitrary union types") from None
        if a is type(None):  # noqa: E721
            return optional_parser(from_avro_value(b))
        if b is type(None):  # noqa: E721
            return optional_parser(from_avro_value(a))
        raise NotImplementedError("Cannot handle arbitrary union types")

    return None


@lru_cache
def parser_transformations(cls: type[DataclassInstance]) -> Mapping[str, Parser]:
    hints = get_type_hints(cls)
    cls_transformations = {}
    for field in fields(cls):
        transformation = from_avro_value(hints[field.name])
        if transformation is not None:
            cls_transformations[field.name] = transformation
    return cls_transformations


T = TypeVar("T", bound=DataclassInstance)


def from_avro_dict(cls: type[T], data: Mapping[str, object]) -> T:
    """Build a dataclass instance, keys without a matching field are ignored."""
    cls_transformations = parser_transformations(cls)
    field_names = {field.name for field in fields(cls)}
    return cls(**{key: cls_transformations.get(key, noop)(value) for key, value in data.items() if key in field_names})
