"""
Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, unique
from schemahub.core.errors import InvalidVersion
from typing import NewType, TypeAlias, Union

JsonArray: TypeAlias = list["JsonData"]
JsonObject: TypeAlias = dict[str, "JsonData"]
JsonScalar: TypeAlias = Union[str, int, float, None]
JsonData: TypeAlias = Union[JsonScalar, JsonObject, JsonArray]

# JSON types suitable as arguments, i.e. using abstract types that don't allow mutation.
ArgJsonArray: TypeAlias = Sequence["ArgJsonData"]
ArgJsonObject: TypeAlias = Mapping[str, "ArgJsonData"]
ArgJsonData: TypeAlias = Union[JsonScalar, ArgJsonObject, ArgJsonArray]

# Unique among all records of all subjects, never reused after deletion.
SchemaId = NewType("SchemaId", int)

# First path segment of the `/schemas/{id}` routes.
RESERVED_SUBJECTS = frozenset({"schemas"})


class Subject(str):
    @classmethod
    def validate(cls, subject_str: str) -> Subject:
        """Subject may not be empty, reserved or contain control characters."""
        if not subject_str:
            raise ValueError("The subject must not be empty.")
        if any(ord(c) <= 31 or 127 <= ord(c) <= 159 for c in subject_str):
            raise ValueError(f"The specified subject '{subject_str}' is not valid.")
        if subject_str in RESERVED_SUBJECTS:
            raise ValueError(f"The subject '{subject_str}' is reserved.")
        return cls(subject_str)


class StrEnum(str, Enum):
    def __str__(self) -> str:
        return str(self.value)


@unique
class NameStrategy(StrEnum, Enum):
    default = "default"
    qualified = "qualified"


@dataclass(frozen=True, order=True, repr=False)
class Version:
    """Positive version number of a record within its subject and format."""

    value: int

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool) or self.value < 1:
            raise InvalidVersion(f"Invalid version {self.value}")

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"Version({self.value})"

    def next(self) -> Version:
        return Version(self.value + 1)
