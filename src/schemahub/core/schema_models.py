"""
schemahub - schema models

Copyright (c) 2023 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from schemahub.core.dataclasses import default_dataclass
from schemahub.core.typing import JsonObject, SchemaId, Subject, Version
from typing import Any, cast, TypeVar

T = TypeVar("T")


def _read_typed(data: Mapping[str, object], key: str, value_type: type[T]) -> T:
    value = data[key]
    if not isinstance(value, value_type):
        raise TypeError(f"Expected key `{key}` to contain value of type {value_type.__name__!r}, found {type(value)!r}.")
    return value


@default_dataclass
class SchemaReference:
    """Identity of a stored record, as used on the wire."""

    subject: Subject
    schema_format: str
    version: Version

    def __repr__(self) -> str:
        return f"{{subject='{self.subject}', format='{self.schema_format}', version={self.version}}}"

    @property
    def key(self) -> tuple[Subject, str, Version]:
        return self.subject, self.schema_format, self.version

    def to_dict(self) -> JsonObject:
        return {
            "subject": str(self.subject),
            "format": self.schema_format,
            "version": self.version.value,
        }

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> SchemaReference:
        return SchemaReference(
            subject=Subject(_read_typed(data, "subject", str)),
            schema_format=_read_typed(data, "format", str),
            version=Version(_read_typed(data, "version", int)),
        )


@default_dataclass
class SchemaRecord:
    schema_id: SchemaId
    subject: Subject
    schema_format: str
    version: Version
    definition: str
    references: tuple[SchemaRecord, ...] = ()

    @property
    def key(self) -> tuple[Subject, str, Version]:
        return self.subject, self.schema_format, self.version

    def to_reference(self) -> SchemaReference:
        return SchemaReference(subject=self.subject, schema_format=self.schema_format, version=self.version)

    def to_dict(self) -> JsonObject:
        return {
            "id": self.schema_id,
            "subject": str(self.subject),
            "format": self.schema_format,
            "version": self.version.value,
            "definition": self.definition,
            "references": [reference.to_reference().to_dict() for reference in self.references],
        }


@dataclass(frozen=True)
class ParsedSchema:
    """In-memory representation of a definition, produced by a format validator.

    Equality is the format-specific structural equality used to decide
    whether a submitted definition matches a stored version. It compares
    `structure` when the validator provides one, else `schema`. `canonical`
    is a stable text form of the compared value used for hashing.
    """

    schema_format: str
    definition: str
    schema: Any
    canonical: str
    references: tuple[SchemaRecord, ...] = ()
    validator: Any = field(default=None, repr=False)
    structure: Any = field(default=None, repr=False)

    def _compared(self) -> Any:
        return self.schema if self.structure is None else self.structure

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParsedSchema):
            return NotImplemented
        return self.schema_format == other.schema_format and self._compared() == other._compared()

    def __hash__(self) -> int:
        return hash((self.schema_format, self.canonical))

    def __str__(self) -> str:
        return self.canonical

    @property
    def name(self) -> str | None:
        if isinstance(self.schema, dict):
            title = self.schema.get("title")
            return title if isinstance(title, str) else None
        return cast(str | None, getattr(self.schema, "name", None))

    @property
    def namespace(self) -> str | None:
        if isinstance(self.schema, dict):
            return None
        return cast(str | None, getattr(self.schema, "namespace", None))

    @property
    def fullname(self) -> str | None:
        if self.name is None:
            return None
        return f"{self.namespace}.{self.name}" if self.namespace else self.name
